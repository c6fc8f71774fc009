import logging
from typing import Any, Iterable, Mapping, NamedTuple

from preventa.models.models import OfertaTipo
from preventa.schemas.oferta import AplicacionBonificacion, ObjetivoBonificacion, Oferta
from preventa.schemas.pedido import ItemPedido
from preventa.services.alcance_service import (
    CAMPOS_FAMILIA,
    CAMPOS_LINEA,
    CAMPOS_SUBFAMILIA,
    indexar_productos,
    valores_de,
)
from preventa.utils.utils import leer_campo, normalizar_codigo

logger = logging.getLogger(__name__)


class ResultadoBonificacion(NamedTuple):
    cantidad_total: float
    aplicaciones: list[AplicacionBonificacion]


SIN_BONIFICACION = ResultadoBonificacion(0, [])


def _codigos_producto(producto: Any, campos: Iterable[str]) -> set[str]:
    return {normalizar_codigo(v) for v in valores_de(producto, campos)}


def buscar_candidato(objetivo: ObjetivoBonificacion, catalogo: Mapping[str, Any]) -> str | None:
    """Primer producto del catálogo cuya línea/familia coincide con el objetivo."""
    if objetivo.tipo == "linea":
        ids = [objetivo.linea_id, *objetivo.linea_ids]
        campos = (*CAMPOS_LINEA, *CAMPOS_SUBFAMILIA)
    else:
        ids = [objetivo.familia_id, *objetivo.familia_ids]
        campos = CAMPOS_FAMILIA

    buscados = {normalizar_codigo(i) for i in ids if i is not None and normalizar_codigo(i)}
    if not buscados:
        return None

    for producto in catalogo.values():
        if buscados & _codigos_producto(producto, campos):
            return str(leer_campo(producto, "codigo_producto"))
    return None


def resolver_objetivo(
    objetivo: ObjetivoBonificacion, item_origen: ItemPedido, catalogo: Mapping[str, Any]
) -> tuple[str | None, bool]:
    """
    Producto que recibe la bonificación y si hace falta que el usuario elija.
    Devuelve (producto_id, requiere_seleccion).
    """
    if objetivo.tipo == "same":
        return str(item_origen.producto_id), False

    if objetivo.tipo == "sku":
        if objetivo.product_id:
            return str(objetivo.product_id), False
        return None, True

    # linea / familia
    if objetivo.requiere_seleccion_usuario:
        return None, True
    candidato = buscar_candidato(objetivo, catalogo)
    if candidato is not None:
        return candidato, False
    # Sin candidato en catálogo se bonifica el producto que calificó
    return str(item_origen.producto_id), False


def _aplicacion(
    origen: list[ItemPedido], aplicaciones: int, oferta: Oferta, catalogo: Mapping[str, Any]
) -> AplicacionBonificacion:
    objetivo = oferta.bonus.target
    producto_id, requiere = resolver_objetivo(objetivo, origen[0], catalogo)
    return AplicacionBonificacion(
        items_origen=[item.id for item in origen],
        aplicaciones=aplicaciones,
        cantidad_bonificada=aplicaciones * oferta.bonus.gives_m,
        producto_resuelto=producto_id,
        requiere_seleccion=requiere,
        tipo_objetivo=objetivo.tipo,
    )


def calcular_bonificacion(oferta: Oferta, items: Iterable[ItemPedido], productos) -> ResultadoBonificacion:
    """
    Cantidad bonificada ("cada N lleva M") y a qué producto va.

    Por línea, cada línea dispara floor(cantidad / N) aplicaciones y el tope
    maxApplications se consume en el orden de las líneas. Acumulado, se suma
    la cantidad de todas las líneas y se genera una sola aplicación.
    """
    config = oferta.bonus
    if oferta.tipo != OfertaTipo.BONUS or config is None:
        return SIN_BONIFICACION
    if config.every_n <= 0 or config.gives_m <= 0:
        logger.debug(f"[ofertas] {oferta.id}: bonificación sin everyN/givesM válidos")
        return SIN_BONIFICACION

    items = [item for item in items if not item.es_bonificacion and item.cantidad > 0]
    if not items:
        return SIN_BONIFICACION

    catalogo = indexar_productos(productos)
    tope = config.max_applications if config.max_applications and config.max_applications > 0 else None
    aplicaciones: list[AplicacionBonificacion] = []

    if config.mode == "por_linea":
        restante = tope
        for item in items:
            veces = int(item.cantidad // config.every_n)
            if restante is not None:
                veces = min(veces, restante)
                restante -= veces
            if veces > 0:
                aplicaciones.append(_aplicacion([item], veces, oferta, catalogo))
    else:
        total = sum(item.cantidad for item in items)
        veces = int(total // config.every_n)
        if tope is not None:
            veces = min(veces, tope)
        if veces > 0:
            aplicaciones.append(_aplicacion(items, veces, oferta, catalogo))

    cantidad_total = sum(a.cantidad_bonificada for a in aplicaciones)
    logger.debug(f"[ofertas] {oferta.id}: bonificación total={cantidad_total} aplicaciones={len(aplicaciones)}")
    return ResultadoBonificacion(cantidad_total, aplicaciones)
