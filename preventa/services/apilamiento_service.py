import logging

from preventa.schemas.oferta import OfertaAplicable

logger = logging.getLogger(__name__)


def clave_preferencia(aplicable: OfertaAplicable) -> tuple[float, float, int]:
    """Orden de preferencia entre ofertas en conflicto: descuento, unidades bonificadas, prioridad."""
    return (
        aplicable.descuento_potencial or 0,
        aplicable.cantidad_bonificacion_potencial or 0,
        aplicable.oferta.priority,
    )


def se_superponen(a: OfertaAplicable, b: OfertaAplicable) -> bool:
    return not a.productos_ids.isdisjoint(b.productos_ids)


def ofertas_en_conflicto(a: OfertaAplicable, b: OfertaAplicable) -> bool:
    """Tocan algún producto en común y al menos una no admite combinarse."""
    if not se_superponen(a, b):
        return False
    return not (a.oferta.stackable_with_same_product and b.oferta.stackable_with_same_product)


def mejor_oferta(candidatas: list[OfertaAplicable]) -> OfertaAplicable:
    """La de mayor preferencia; en empate gana la que aparece primero."""
    ganadora = candidatas[0]
    for actual in candidatas[1:]:
        if clave_preferencia(actual) > clave_preferencia(ganadora):
            ganadora = actual
    return ganadora


def resolver_apilamiento(aplicables: list[OfertaAplicable]) -> list[OfertaAplicable]:
    """
    Ofertas que impactan el mismo producto solo se acumulan si todas son
    stackableWithSameProduct. Si alguna no lo es, en ese producto queda solo
    la mejor y las demás salen del resultado completo (no solo de ese producto).
    """
    por_producto: dict[str, list[int]] = {}
    for posicion, aplicable in enumerate(aplicables):
        for producto_id in sorted(aplicable.productos_ids):
            por_producto.setdefault(producto_id, []).append(posicion)

    bloqueadas: set[int] = set()
    for producto_id, posiciones in por_producto.items():
        if len(posiciones) <= 1:
            continue
        grupo = [aplicables[p] for p in posiciones]
        if all(a.oferta.stackable_with_same_product for a in grupo):
            continue

        ganadora = mejor_oferta(grupo)
        for posicion in posiciones:
            if aplicables[posicion] is not ganadora:
                bloqueadas.add(posicion)

    resultado = [a for p, a in enumerate(aplicables) if p not in bloqueadas]

    if bloqueadas:
        logger.info(
            f"[ofertas] conflicto de apilamiento: descartadas="
            f"{[aplicables[p].oferta_id for p in sorted(bloqueadas)]} "
            f"conservadas={[a.oferta_id for a in resultado]}"
        )

    return resultado
