from typing import Annotated, Literal

from pydantic import BeforeValidator, Field, field_validator

from preventa.models.models import OfertaTipo
from preventa.schemas.pedido import EsquemaBase, ItemPedido, ResultadoAplicacion
from preventa.utils.utils import normalizar_texto

VALORES_APILABLE_SI = {"1", "true", "yes", "si", "sí", "stackable"}
VALORES_APILABLE_NO = {"0", "false", "no"}


def resolver_apilable(valor) -> bool:
    """
    Valor efectivo de stackableWithSameProduct. Las ofertas creadas antes de
    que existiera el campo no lo traen: se consideran combinables.
    """
    if valor is None:
        return True
    if isinstance(valor, bool):
        return valor
    if isinstance(valor, (int, float)):
        return valor == 1
    if isinstance(valor, str):
        s = valor.strip().lower()
        if s in VALORES_APILABLE_SI:
            return True
        if s in VALORES_APILABLE_NO:
            return False
    return True


def _a_lista(valor):
    if valor is None:
        return []
    if isinstance(valor, (str, int, float)):
        return [valor]
    return [v for v in valor if v is not None and str(v).strip() != ""]


ListaCodigos = Annotated[list[str], BeforeValidator(_a_lista)]


class OfertaFechas(EsquemaBase):
    valid_from: str | None = None
    valid_to: str | None = None


class OfertaAlcance(EsquemaBase):
    # Cliente
    canales: ListaCodigos = []
    sub_canales: ListaCodigos = []
    codigos_cliente: ListaCodigos = []
    departamentos: ListaCodigos = []
    regiones: ListaCodigos = []
    vendedores: ListaCodigos = []
    # Producto
    codigos_producto: ListaCodigos = []
    codigos_proveedor: ListaCodigos = []
    codigos_familia: ListaCodigos = []
    codigos_subfamilia: ListaCodigos = []
    codigos_linea: ListaCodigos = []


class TramoDescuento(EsquemaBase):
    desde: float | None = Field(default=None, alias="from")
    hasta: float | None = Field(default=None, alias="to")
    percent: float | None = None
    amount: float | None = None

    def contiene(self, cantidad: float) -> bool:
        if self.desde is not None and cantidad < self.desde:
            return False
        if self.hasta is not None and cantidad > self.hasta:
            return False
        return True


class ConfigDescuento(EsquemaBase):
    percent: float | None = None
    amount: float | None = None
    tiers: list[TramoDescuento] = []
    # None: por línea si hay tramos, acumulado si no
    per_line: bool | None = None

    @field_validator("tiers", mode="before")
    @classmethod
    def descartar_tramos_vacios(cls, valor):
        if not valor:
            return []
        return [
            t for t in valor
            if not isinstance(t, dict) or t.get("percent") is not None or t.get("amount") is not None
        ]

    @property
    def tramos_ordenados(self) -> list[TramoDescuento]:
        return sorted(self.tiers, key=lambda t: t.desde or 0)

    @property
    def por_linea(self) -> bool:
        if self.per_line is not None:
            return self.per_line
        return bool(self.tiers)


class ObjetivoBonificacion(EsquemaBase):
    tipo: Literal["same", "sku", "linea", "familia"] = Field(default="same", alias="type")
    product_id: str | None = None
    linea_id: str | None = None
    linea_ids: ListaCodigos = []
    familia_id: str | None = None
    familia_ids: ListaCodigos = []
    requiere_seleccion_usuario: bool = False

    @field_validator("tipo", mode="before")
    @classmethod
    def normalizar_tipo(cls, valor):
        # "Línea" -> "linea"
        return normalizar_texto(valor).lower() or "same"


class ConfigBonificacion(EsquemaBase):
    every_n: float = 0
    gives_m: float = 0
    mode: Literal["acumulado", "por_linea"] = "acumulado"
    max_applications: int | None = None
    target: ObjetivoBonificacion = Field(default_factory=ObjetivoBonificacion)

    @field_validator("mode", mode="before")
    @classmethod
    def normalizar_modo(cls, valor):
        if normalizar_texto(valor).replace("-", "_") in {"POR_LINEA", "PORLINEA", "PER_LINE", "LINEA"}:
            return "por_linea"
        return "acumulado"


class Oferta(EsquemaBase):
    id: str
    codigo_empresa: str | None = None
    tipo: OfertaTipo = Field(alias="type")
    nombre: str | None = Field(default=None, alias="name")
    estado: str | None = Field(default=None, alias="status")
    fechas: OfertaFechas = Field(default_factory=OfertaFechas, alias="dates")
    scope: OfertaAlcance = Field(default_factory=OfertaAlcance)

    # Forma legada del alcance de producto
    products: ListaCodigos = []
    familias: ListaCodigos = []
    subfamilias: ListaCodigos = []
    proveedores: ListaCodigos = []
    codigos_linea: ListaCodigos = []

    stackable_with_same_product: bool = True
    discount: ConfigDescuento | None = None
    bonus: ConfigBonificacion | None = None
    priority: int = 5

    @field_validator("tipo", mode="before")
    @classmethod
    def normalizar_tipo(cls, valor):
        return str(valor).strip().lower() if valor is not None else valor

    @field_validator("stackable_with_same_product", mode="before")
    @classmethod
    def normalizar_apilable(cls, valor):
        return resolver_apilable(valor)

    @field_validator("priority", mode="before")
    @classmethod
    def prioridad_por_defecto(cls, valor):
        return 5 if valor is None else valor


class AplicacionBonificacion(EsquemaBase):
    items_origen: list[str] = Field(default=[], alias="sourceItemIds")
    aplicaciones: int = Field(default=0, alias="applications")
    cantidad_bonificada: float = Field(default=0, alias="bonusQty")
    producto_resuelto: str | None = Field(default=None, alias="resolvedProductId")
    requiere_seleccion: bool = Field(default=False, alias="requiresSelection")
    tipo_objetivo: str = Field(default="same", alias="targetType")


class OfertaAplicable(EsquemaBase):
    oferta: Oferta = Field(alias="offer")
    items_aplicables: list[ItemPedido] = Field(default=[], alias="applicableItems")
    descuento_potencial: float = Field(default=0, alias="potentialDiscount")
    cantidad_bonificacion_potencial: float | None = Field(default=None, alias="potentialBonusQty")
    aplicaciones_bonificacion: list[AplicacionBonificacion] = Field(default=[], alias="bonusApplications")

    @property
    def oferta_id(self) -> str:
        return self.oferta.id

    @property
    def productos_ids(self) -> set[str]:
        return {str(item.producto_id) for item in self.items_aplicables}

    @property
    def items_ids(self) -> set[str]:
        return {item.id for item in self.items_aplicables}


# ============ API ============

class EvaluacionOfertasRequest(EsquemaBase):
    codigo_empresa: str | None = None
    codigo_vendedor: str | None = None
    codigo_cliente: str | None = None
    items: list[ItemPedido] = []
    resolver_conflictos: bool = False


class RecalculoOfertasRequest(EvaluacionOfertasRequest):
    aplicadas: list[str] = []
    # oferta bonus -> producto elegido por el usuario
    selecciones: dict[str, str] = {}


class AlternarOfertaRequest(RecalculoOfertasRequest):
    oferta_id: str


class PedidoOfertasRead(EsquemaBase):
    aplicadas: list[str]
    aplicables: list[OfertaAplicable]
    resultado: ResultadoAplicacion
