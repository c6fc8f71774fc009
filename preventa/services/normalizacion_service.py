import json
import logging
from typing import Any, Iterable

from pydantic import ValidationError

from preventa.schemas.oferta import Oferta
from preventa.utils.utils import a_booleano

logger = logging.getLogger(__name__)


def _vacio(valor) -> bool:
    return valor is None or valor == "" or valor == [] or valor == {}


def _primero(*valores):
    """Primer valor no vacío."""
    for valor in valores:
        if not _vacio(valor):
            return valor
    return None


def extraer_detalle(raw: Any) -> dict | None:
    """
    Devuelve el detalle legado `raw.ofertaDetalle` (string JSON o dict).
    Un blob corrupto se ignora: la oferta se evalúa con sus campos de primer nivel.
    """
    if not isinstance(raw, dict):
        return None
    detalle = raw.get("ofertaDetalle")
    if _vacio(detalle):
        return None
    if isinstance(detalle, dict):
        return detalle
    try:
        detalle = json.loads(detalle)
    except (TypeError, ValueError) as e:
        logger.warning(f"ofertaDetalle ilegible, se usan los campos de primer nivel: {e}")
        return None
    return detalle if isinstance(detalle, dict) else None


def normalizar_descuento(config: Any) -> dict | None:
    """Convierte las formas legadas {type: percentage|fixed, value} a percent/amount."""
    if not isinstance(config, dict):
        return config
    config = dict(config)
    tipo = str(config.get("type") or "").strip().lower()
    valor = config.get("value")
    if valor is not None:
        if tipo in ("percentage", "percent", "porcentaje") and config.get("percent") is None:
            config["percent"] = valor
        elif tipo in ("fixed", "amount", "monto") and config.get("amount") is None:
            config["amount"] = valor

    if config.get("perLine") is None:
        for clave in ("byLine", "applyPerLine", "aplicarPorLinea", "porLinea"):
            if config.get(clave) is not None:
                config["perLine"] = a_booleano(config[clave])
                break
    return config


def normalizar_bonificacion(config: Any) -> dict | None:
    """Mapea buyQty/bonusQty/productId/sameAsQualifier a la forma everyN/givesM/target."""
    if not isinstance(config, dict):
        return config
    config = dict(config)
    if _vacio(config.get("everyN")):
        config["everyN"] = config.get("buyQty")
    if _vacio(config.get("givesM")):
        config["givesM"] = config.get("bonusQty")

    target = config.get("target") or {}
    if not isinstance(target, dict):
        return {k: v for k, v in config.items() if v is not None}

    target = dict(target)
    if _vacio(target.get("type")) and _vacio(target.get("tipo")):
        if config.get("productId") and not config.get("sameAsQualifier"):
            target["type"] = "sku"
            target.setdefault("productId", config["productId"])
        else:
            target["type"] = "same"
    config["target"] = target

    return {k: v for k, v in config.items() if v is not None}


def fusionar_legado(data: dict) -> dict:
    """
    Completa los campos vacíos de primer nivel con el detalle legado.
    El detalle solo rellena: nunca pisa un valor ya presente.
    """
    detalle = extraer_detalle(data.get("raw"))
    if detalle is None:
        return data

    fusion = dict(data)
    scope_detalle = detalle.get("scope") or {}
    fusion["dates"] = _primero(data.get("dates"), detalle.get("dates")) or {}
    fusion["scope"] = _primero(data.get("scope"), scope_detalle) or {}
    fusion["products"] = _primero(data.get("products"), detalle.get("products"), detalle.get("codigosProducto")) or []
    fusion["discount"] = _primero(data.get("discount"), data.get("discountConfig"), detalle.get("discount"), detalle.get("discountConfig"))
    fusion["bonus"] = _primero(data.get("bonus"), detalle.get("bonus"))
    fusion["codigosLinea"] = _primero(
        data.get("codigosLinea"), data.get("lineas"), detalle.get("codigosLinea"), detalle.get("lineas")
    ) or []
    for clave in ("familias", "subfamilias", "proveedores"):
        fusion[clave] = _primero(data.get(clave), detalle.get(clave)) or []
    for clave in ("type", "status", "name", "codigoEmpresa", "priority"):
        if _vacio(fusion.get(clave)):
            fusion[clave] = detalle.get(clave)
    if data.get("stackableWithSameProduct") is None and "stackable_with_same_product" not in data:
        fusion["stackableWithSameProduct"] = detalle.get("stackableWithSameProduct")
    return fusion


def normalizar_oferta(data: Any) -> Oferta | None:
    """
    Lleva un registro de oferta sincronizado a la forma canónica `Oferta`.
    Si el registro no es interpretable, devuelve None y deja el motivo en el log.
    """
    if isinstance(data, Oferta):
        return data
    if not isinstance(data, dict):
        logger.warning(f"Oferta descartada: registro de tipo {type(data).__name__}")
        return None

    data = fusionar_legado(data)
    oferta_id = _primero(data.get("id"), data.get("serverId"), data.get("uuid"))
    if oferta_id is None:
        logger.warning("Oferta descartada: sin id")
        return None

    data = {**data, "id": oferta_id}
    if _vacio(data.get("discount")) and not _vacio(data.get("discountConfig")):
        data["discount"] = data["discountConfig"]
    data["discount"] = normalizar_descuento(data.get("discount"))
    data["bonus"] = normalizar_bonificacion(data.get("bonus"))
    data.pop("raw", None)

    try:
        return Oferta.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Oferta {oferta_id} descartada por configuración inválida: {e.error_count()} error(es)")
        logger.debug(f"Detalle de validación de {oferta_id}: {e}")
        return None


def normalizar_ofertas(registros: Iterable[Any]) -> list[Oferta]:
    ofertas = []
    for registro in registros or []:
        if isinstance(registro, dict) and registro.get("deleted"):
            continue
        oferta = normalizar_oferta(registro)
        if oferta is not None:
            ofertas.append(oferta)
    return ofertas
