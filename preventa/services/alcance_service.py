import logging
from datetime import date
from typing import Any, Iterable, Mapping

from preventa.schemas.oferta import Oferta
from preventa.schemas.pedido import ItemPedido
from preventa.utils.utils import leer_campo, normalizar_codigo, normalizar_texto, parsear_fecha, tokens_codigo

logger = logging.getLogger(__name__)

ESTADOS_EXCLUIDOS = {
    "INACTIVE", "INACTIVA", "INACTIVO",
    "DRAFT", "BORRADOR",
    "CLOSED", "CERRADA", "CERRADO",
    "VENCIDA", "VENCIDO", "EXPIRED",
}

# Nombres con los que llega cada dato del cliente según el origen
CAMPOS_CODIGO_CLIENTE = ("codigo_cliente",)
CAMPOS_CANAL = ("canal_venta", "canal", "tipo_cliente", "codigo_canal", "canal_codigo")
CAMPOS_SUB_CANAL = ("sub_canal_venta", "sub_canal", "codigo_sub_canal")
CAMPOS_ZONA = ("departamento", "region")

CAMPOS_FAMILIA = ("codigo_familia", "familia")
CAMPOS_SUBFAMILIA = ("codigo_subfamilia", "subfamilia")
CAMPOS_LINEA = ("codigo_linea", "codigo_filtro_venta", "linea_venta")


# ============ Oferta ============

def estado_excluido(estado: Any) -> bool:
    return normalizar_texto(estado) in ESTADOS_EXCLUIDOS


def oferta_vigente(oferta: Oferta, hoy: date | None = None) -> bool:
    """
    validFrom <= hoy <= validTo con límites inclusivos. Un límite ausente no
    restringe; un límite presente pero ilegible deja la oferta fuera.
    """
    hoy = hoy or date.today()
    for valor, es_inicio in ((oferta.fechas.valid_from, True), (oferta.fechas.valid_to, False)):
        if valor is None or str(valor).strip() == "":
            continue
        limite = parsear_fecha(valor)
        if limite is None:
            logger.debug(f"[ofertas] {oferta.id}: fecha ilegible {valor!r}")
            return False
        if es_inicio and hoy < limite:
            return False
        if not es_inicio and hoy > limite:
            return False
    return True


def empresa_coincide(oferta: Oferta, codigo_empresa: str | None) -> bool:
    if not oferta.codigo_empresa or not codigo_empresa:
        return True
    return str(oferta.codigo_empresa).strip().lower() == str(codigo_empresa).strip().lower()


# ============ Cliente ============

def valores_de(obj: Any, campos: Iterable[str]) -> list[Any]:
    valores = []
    for campo in campos:
        valor = leer_campo(obj, campo)
        if valor is not None and str(valor).strip() != "":
            valores.append(valor)
    return valores


def coincide_dimension(permitidos: list[str], valores: list[Any]) -> bool:
    """
    Intersección de tokens normalizados. Lista vacía: sin restricción.
    Con restricción y sin datos del cliente, no coincide.
    """
    if not permitidos:
        return True

    tokens_permitidos = set()
    for permitido in permitidos:
        tokens_permitidos |= tokens_codigo(permitido)
    if not tokens_permitidos:
        return True

    tokens_valores = set()
    for valor in valores:
        tokens_valores |= tokens_codigo(valor)
    if not tokens_valores:
        return False

    return not tokens_permitidos.isdisjoint(tokens_valores)


def motivo_exclusion_cliente(oferta: Oferta, cliente: Any, codigo_vendedor: str | None = None) -> str | None:
    """Primera dimensión del alcance de cliente que no se cumple, o None."""
    scope = oferta.scope
    dimensiones = (
        ("codigosCliente", scope.codigos_cliente, valores_de(cliente, CAMPOS_CODIGO_CLIENTE)),
        ("canales", scope.canales, valores_de(cliente, CAMPOS_CANAL)),
        ("subCanales", scope.sub_canales, valores_de(cliente, CAMPOS_SUB_CANAL)),
        ("departamentos", scope.departamentos, valores_de(cliente, CAMPOS_ZONA)),
        ("regiones", scope.regiones, valores_de(cliente, CAMPOS_ZONA)),
        ("vendedores", scope.vendedores, [codigo_vendedor] if codigo_vendedor else []),
    )
    for nombre, permitidos, valores in dimensiones:
        if not coincide_dimension(permitidos, valores):
            return nombre
    return None


def cliente_en_alcance(oferta: Oferta, cliente: Any, codigo_vendedor: str | None = None) -> bool:
    return motivo_exclusion_cliente(oferta, cliente, codigo_vendedor) is None


# ============ Producto ============

def indexar_productos(productos: Iterable[Any] | Mapping[str, Any] | None) -> dict[str, Any]:
    """Catálogo indexado por código normalizado. El primer producto con un código gana."""
    if isinstance(productos, Mapping):
        return dict(productos)
    catalogo: dict[str, Any] = {}
    for producto in productos or []:
        codigo = normalizar_codigo(leer_campo(producto, "codigo_producto"))
        if codigo and codigo not in catalogo:
            catalogo[codigo] = producto
    return catalogo


def buscar_producto(producto_id: Any, productos) -> Any | None:
    catalogo = productos if isinstance(productos, Mapping) else indexar_productos(productos)
    return catalogo.get(normalizar_codigo(producto_id))


def _codigos(*listas: Iterable[str]) -> set[str]:
    return {normalizar_codigo(v) for lista in listas for v in lista if normalizar_codigo(v)}


def _primer_valor(producto: Any, campos: Iterable[str]) -> str:
    valores = valores_de(producto, campos)
    return normalizar_codigo(valores[0]) if valores else ""


def oferta_abierta(oferta: Oferta) -> bool:
    """True si la oferta no restringe ninguna dimensión de producto."""
    scope = oferta.scope
    return not any((
        oferta.products, scope.codigos_producto,
        oferta.proveedores, scope.codigos_proveedor,
        oferta.familias, scope.codigos_familia,
        oferta.subfamilias, scope.codigos_subfamilia,
        oferta.codigos_linea, scope.codigos_linea,
    ))


def producto_en_alcance(oferta: Oferta, producto_id: Any, producto: Any | None) -> bool:
    if oferta_abierta(oferta):
        return True

    scope = oferta.scope
    permitidos = _codigos(oferta.products, scope.codigos_producto)
    if normalizar_codigo(producto_id) in permitidos:
        return True

    if producto is None:
        return False

    if permitidos and normalizar_codigo(leer_campo(producto, "codigo_producto")) in permitidos:
        return True

    proveedor = normalizar_codigo(leer_campo(producto, "codigo_proveedor"))
    if proveedor and proveedor in _codigos(oferta.proveedores, scope.codigos_proveedor):
        return True

    familia = _primer_valor(producto, CAMPOS_FAMILIA)
    if familia and familia in _codigos(oferta.familias, scope.codigos_familia):
        return True

    # Sub-familia y línea son intercambiables: distintos backends usan uno u otro nombre
    lineas = _codigos(oferta.subfamilias, scope.codigos_subfamilia, oferta.codigos_linea, scope.codigos_linea)
    subfamilia = _primer_valor(producto, CAMPOS_SUBFAMILIA)
    if subfamilia and subfamilia in lineas:
        return True
    linea = _primer_valor(producto, CAMPOS_LINEA)
    if linea and linea in lineas:
        return True

    return False


def item_en_alcance(oferta: Oferta, item: ItemPedido, productos) -> bool:
    producto = buscar_producto(item.producto_id, productos)
    return producto_en_alcance(oferta, item.producto_id, producto)


def items_en_alcance(oferta: Oferta, items: Iterable[ItemPedido], productos) -> list[ItemPedido]:
    """Líneas del carrito (sin bonificaciones) que caen dentro del alcance de producto."""
    catalogo = indexar_productos(productos)
    return [
        item for item in items
        if not item.es_bonificacion and item_en_alcance(oferta, item, catalogo)
    ]
