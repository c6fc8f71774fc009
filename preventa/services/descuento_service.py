import logging
from typing import Iterable, NamedTuple

from preventa.models.models import OfertaTipo
from preventa.schemas.oferta import ConfigDescuento, Oferta, TramoDescuento
from preventa.schemas.pedido import ItemPedido
from preventa.utils.utils import redondear

logger = logging.getLogger(__name__)


class TasaLinea(NamedTuple):
    porcentaje: float
    monto: float

    def descuento(self, item: ItemPedido) -> float:
        return item.bruto * self.porcentaje / 100 + self.monto * item.cantidad


def elegir_tramo(tramos: list[TramoDescuento], cantidad: float) -> TramoDescuento | None:
    """Primer tramo (en orden ascendente de `from`) cuyos límites contienen la cantidad."""
    for tramo in tramos:
        if tramo.contiene(cantidad):
            return tramo
    return None


def _tasa(config: ConfigDescuento, tramos: list[TramoDescuento], cantidad: float) -> TasaLinea | None:
    porcentaje = config.percent
    monto = config.amount
    if tramos:
        tramo = elegir_tramo(tramos, cantidad)
        if tramo is None:
            return None
        if tramo.percent is not None:
            porcentaje = tramo.percent
        if tramo.amount is not None:
            monto = tramo.amount

    porcentaje = min(max(porcentaje or 0, 0), 100)
    monto = max(monto or 0, 0)
    if porcentaje == 0 and monto == 0:
        return None
    return TasaLinea(porcentaje, monto)


def tasas_por_item(oferta: Oferta, items: Iterable[ItemPedido]) -> dict[str, TasaLinea]:
    """
    Porcentaje y monto fijo que la oferta aplica a cada línea.

    Por línea, cada línea elige su tramo con su propia cantidad. Acumulado, la
    suma de cantidades elige un único tramo que se aplica al bruto de cada
    línea. Las líneas sin tasa no aparecen en el resultado.
    """
    config = oferta.discount
    if oferta.tipo != OfertaTipo.DISCOUNT or config is None:
        return {}

    items = [item for item in items if not item.es_bonificacion]
    tramos = config.tramos_ordenados
    tasas: dict[str, TasaLinea] = {}

    if config.por_linea:
        for item in items:
            tasa = _tasa(config, tramos, item.cantidad)
            if tasa is not None:
                tasas[item.id] = tasa
    else:
        cantidad_total = sum(item.cantidad for item in items)
        tasa = _tasa(config, tramos, cantidad_total)
        if tasa is not None:
            for item in items:
                tasas[item.id] = tasa

    return tasas


def calcular_descuento(oferta: Oferta, items: Iterable[ItemPedido]) -> float:
    """Descuento monetario total (>= 0) que la oferta genera sobre las líneas dadas."""
    items = list(items)
    tasas = tasas_por_item(oferta, items)
    total = 0.0
    for item in items:
        tasa = tasas.get(item.id)
        if tasa is None:
            continue
        linea = tasa.descuento(item)
        logger.debug(
            f"[ofertas] {oferta.id} item={item.id} bruto={item.bruto} "
            f"pct={tasa.porcentaje} fijo={tasa.monto} descuento={linea:.4f}"
        )
        total += linea
    return redondear(total)
