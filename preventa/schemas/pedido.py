from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from preventa.utils.utils import redondear


class EsquemaBase(BaseModel):
    """Base de los esquemas: atributos snake_case, JSON camelCase como en la app de preventa."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class ItemPedido(EsquemaBase):
    id: str
    producto_id: str
    descripcion: str | None = None
    cantidad: int | float = 0
    precio_unitario: float = 0

    # Campos de precio que administra el motor de ofertas
    subtotal_sin_descuento: float | None = None
    descuento_linea: float | None = None
    subtotal: float | None = None
    total: float | None = None

    # Líneas bonificadas generadas por ofertas de tipo bonus
    es_bonificacion: bool = False
    promo_bonificacion_id: str | None = None
    items_relacionados: list[str] = []

    @property
    def bruto(self) -> float:
        if self.es_bonificacion and self.subtotal_sin_descuento is not None:
            return self.subtotal_sin_descuento
        return redondear(self.cantidad * self.precio_unitario)


class Pedido(EsquemaBase):
    codigo_empresa: str | None = None
    codigo_vendedor: str | None = None
    items: list[ItemPedido] = []
    subtotal: float | None = None


class ResultadoAplicacion(EsquemaBase):
    items: list[ItemPedido]
    subtotal_bruto: float = 0
    descuento_total: float = 0
    valor_bonificado: float = 0
    subtotal: float = 0
    descuento_por_oferta: dict[str, float] = Field(default_factory=dict)
    bonificaciones_pendientes: list[str] = []
