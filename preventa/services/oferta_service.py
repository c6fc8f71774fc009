import logging
from datetime import date
from typing import Any, Iterable

from preventa.models.models import OfertaTipo
from preventa.schemas.oferta import Oferta, OfertaAplicable
from preventa.schemas.pedido import ItemPedido, Pedido
from preventa.services.alcance_service import (
    empresa_coincide,
    estado_excluido,
    indexar_productos,
    items_en_alcance,
    motivo_exclusion_cliente,
    oferta_vigente,
)
from preventa.services.apilamiento_service import resolver_apilamiento
from preventa.services.bonificacion_service import calcular_bonificacion
from preventa.services.descuento_service import calcular_descuento
from preventa.services.normalizacion_service import normalizar_oferta
from preventa.utils.utils import leer_campo

logger = logging.getLogger(__name__)

TIPOS_EVALUABLES = {OfertaTipo.DISCOUNT, OfertaTipo.BONUS}


def evaluar_oferta(oferta: Oferta, items: Iterable[ItemPedido], productos) -> OfertaAplicable | None:
    """
    Líneas que alcanza la oferta y beneficio que generan.
    None si no alcanza ninguna línea o el beneficio es cero.
    """
    if oferta.tipo not in TIPOS_EVALUABLES:
        return None

    aplicables = items_en_alcance(oferta, items, productos)
    if not aplicables:
        logger.debug(f"[ofertas] {oferta.id}: ninguna línea del pedido está en el alcance")
        return None

    if oferta.tipo == OfertaTipo.DISCOUNT:
        if oferta.discount is None:
            logger.debug(f"[ofertas] {oferta.id}: oferta de descuento sin configuración")
            return None
        descuento = calcular_descuento(oferta, aplicables)
        if descuento <= 0:
            logger.debug(f"[ofertas] {oferta.id}: descuento cero (ningún tramo aplica)")
            return None
        return OfertaAplicable(oferta=oferta, items_aplicables=aplicables, descuento_potencial=descuento)

    if oferta.bonus is None:
        logger.debug(f"[ofertas] {oferta.id}: oferta de bonificación sin configuración")
        return None
    resultado = calcular_bonificacion(oferta, aplicables, productos)
    if resultado.cantidad_total <= 0:
        logger.debug(f"[ofertas] {oferta.id}: no alcanza la cantidad para bonificar")
        return None
    return OfertaAplicable(
        oferta=oferta,
        items_aplicables=aplicables,
        descuento_potencial=0,
        cantidad_bonificacion_potencial=resultado.cantidad_total,
        aplicaciones_bonificacion=resultado.aplicaciones,
    )


def motivo_exclusion(
    oferta: Oferta, pedido: Pedido, cliente: Any, hoy: date
) -> str | None:
    """Motivo por el que la oferta no aplica al pedido/cliente, sin mirar las líneas."""
    if oferta.tipo not in TIPOS_EVALUABLES:
        return f"tipo:{oferta.tipo.value}"
    if estado_excluido(oferta.estado):
        return f"estado:{oferta.estado}"
    if not oferta_vigente(oferta, hoy):
        return f"fechas:{oferta.fechas.valid_from}->{oferta.fechas.valid_to}"
    if not empresa_coincide(oferta, pedido.codigo_empresa):
        return f"empresa:{oferta.codigo_empresa}"
    dimension = motivo_exclusion_cliente(oferta, cliente, pedido.codigo_vendedor)
    if dimension is not None:
        return f"alcance-cliente:{dimension}"
    return None


def obtener_ofertas_aplicables(
    pedido: Pedido,
    cliente: Any,
    productos,
    ofertas: Iterable[Oferta | dict],
    hoy: date | None = None,
    resolver_conflictos: bool = False,
) -> list[OfertaAplicable]:
    """
    Ofertas del catálogo que aplican al pedido, en el orden del catálogo,
    cada una con sus líneas alcanzadas y su beneficio potencial.
    Sin cliente o con el carrito vacío no hay ofertas.
    """
    items = [item for item in pedido.items if not item.es_bonificacion]
    if cliente is None or not items:
        return []

    hoy = hoy or date.today()
    catalogo = indexar_productos(productos)
    ofertas = list(ofertas or [])
    aplicables: list[OfertaAplicable] = []

    logger.debug(
        f"[ofertas] analizando {len(ofertas)} ofertas para cliente="
        f"{leer_campo(cliente, 'codigo_cliente')} empresa={pedido.codigo_empresa} items={len(items)}"
    )

    for registro in ofertas:
        oferta = normalizar_oferta(registro)
        if oferta is None:
            continue

        motivo = motivo_exclusion(oferta, pedido, cliente, hoy)
        if motivo is not None:
            logger.debug(f"[ofertas] omitida {oferta.id}: {motivo}")
            continue

        aplicable = evaluar_oferta(oferta, items, catalogo)
        if aplicable is None:
            continue

        logger.debug(
            f"[ofertas] aplicable {oferta.id}: descuento={aplicable.descuento_potencial} "
            f"bonificacion={aplicable.cantidad_bonificacion_potencial}"
        )
        aplicables.append(aplicable)

    if resolver_conflictos:
        return resolver_apilamiento(aplicables)
    return aplicables
