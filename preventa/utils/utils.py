import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from pydantic.alias_generators import to_camel

# Separadores que aparecen en códigos compuestos ("1 — MAYOREO", "CAN-01")
SEPARADORES = re.compile(r"[-_/|–—]+")


def normalizar_texto(valor) -> str:
    """Mayúsculas, sin acentos y sin espacios sobrantes."""
    if valor is None:
        return ""
    texto = unicodedata.normalize("NFKD", str(valor))
    texto = texto.encode("ascii", "ignore").decode("ascii")
    return texto.strip().upper()


def normalizar_codigo(valor) -> str:
    """
    Normaliza un código para comparaciones: texto normalizado y, si es
    numérico, sin ceros a la izquierda ("007" -> "7", "000" -> "0").
    """
    texto = normalizar_texto(valor)
    if texto.isdigit():
        return texto.lstrip("0") or "0"
    return texto


def tokens_codigo(valor) -> set[str]:
    """
    Conjunto de tokens comparables de un valor: el valor completo más cada
    parte separada por guiones, barras o rayas.
    """
    if valor is None:
        return set()
    texto = str(valor).strip()
    if not texto:
        return set()

    tokens = set()
    completo = normalizar_codigo(texto)
    if completo:
        tokens.add(completo)
    for parte in SEPARADORES.split(texto):
        parte = normalizar_codigo(parte)
        if parte:
            tokens.add(parte)
    return tokens


def redondear(valor) -> float:
    """Redondeo comercial a 2 decimales (half-up)."""
    try:
        numero = Decimal(str(valor or 0))
    except ArithmeticError:
        return 0.0
    return float(numero.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


FORMATO_DMY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def parsear_fecha(valor) -> date | None:
    """
    Interpreta una fecha de vigencia como fecha calendario local.
    Acepta yyyy-mm-dd, ISO con hora (convertida a hora local si trae zona) y dd/mm/yyyy.
    """
    if valor is None:
        return None
    if isinstance(valor, datetime):
        return valor.astimezone().date() if valor.tzinfo is not None else valor.date()
    if isinstance(valor, date):
        return valor

    texto = str(valor).strip()
    if not texto:
        return None

    m = FORMATO_DMY.match(texto)
    if m:
        try:
            return date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        except ValueError:
            return None

    try:
        momento = datetime.fromisoformat(texto.replace("Z", "+00:00"))
    except ValueError:
        try:
            return date.fromisoformat(texto[:10])
        except ValueError:
            return None
    # Con zona horaria se lleva a la hora local antes de tomar la fecha
    if momento.tzinfo is not None:
        return momento.astimezone().date()
    return momento.date()


VALORES_VERDADEROS = {"1", "true", "yes", "si", "sí", "y"}
VALORES_FALSOS = {"0", "false", "no", "n"}


def a_booleano(valor, default: bool = False) -> bool:
    if valor is None:
        return default
    if isinstance(valor, bool):
        return valor
    if isinstance(valor, (int, float)):
        return valor == 1
    if isinstance(valor, str):
        s = valor.strip().lower()
        if s in VALORES_VERDADEROS:
            return True
        if s in VALORES_FALSOS:
            return False
    return default


def leer_campo(obj, campo: str):
    """Lee un atributo de un modelo o una clave de un dict (snake_case o camelCase)."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        valor = obj.get(campo)
        return obj.get(to_camel(campo)) if valor is None else valor
    return getattr(obj, campo, None)
