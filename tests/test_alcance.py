from datetime import date, datetime, timedelta, timezone

from preventa.services.alcance_service import (
    cliente_en_alcance,
    empresa_coincide,
    estado_excluido,
    indexar_productos,
    motivo_exclusion_cliente,
    oferta_vigente,
    producto_en_alcance,
)
from preventa.services.normalizacion_service import normalizar_oferta
from preventa.utils.utils import parsear_fecha

HOY = date(2026, 3, 15)


def _oferta(**campos):
    return normalizar_oferta({"id": "O1", "type": "discount", "discount": {"percent": 10}, **campos})


# ============ Vigencia ============

def test_valid_to_hoy_incluye_y_ayer_excluye():
    hoy = date.today()
    vence_hoy = _oferta(dates={"validTo": hoy.isoformat()})
    vencio_ayer = _oferta(dates={"validTo": (hoy - timedelta(days=1)).isoformat()})

    assert oferta_vigente(vence_hoy) is True
    assert oferta_vigente(vencio_ayer) is False


def test_vigencia_formato_dia_mes_anio():
    oferta = _oferta(dates={"validFrom": "15/03/2026", "validTo": "31/03/2026"})

    assert oferta_vigente(oferta, HOY) is True
    assert oferta_vigente(oferta, date(2026, 3, 14)) is False
    assert oferta_vigente(oferta, date(2026, 4, 1)) is False


def test_vigencia_iso_con_hora():
    oferta = _oferta(dates={"validTo": "2026-03-15T23:59:59Z"})
    assert oferta_vigente(oferta, HOY) is True
    assert parsear_fecha("2026-03-15T23:59:59") == HOY


def test_fecha_con_zona_se_lleva_a_hora_local():
    # El mismo instante expresado en UTC puede caer en otro día calendario
    for hora in (0, 23):
        local = datetime(2026, 3, 15, hora, 30).astimezone()
        en_utc = local.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")

        assert parsear_fecha(en_utc) == HOY
        assert parsear_fecha(local.astimezone(timezone.utc)) == HOY


def test_fecha_ilegible_excluye_la_oferta():
    oferta = _oferta(dates={"validFrom": "el lunes"})
    assert oferta_vigente(oferta, HOY) is False


def test_sin_fechas_no_restringe():
    assert oferta_vigente(_oferta(), HOY) is True
    assert oferta_vigente(_oferta(dates={"validFrom": "", "validTo": None}), HOY) is True


# ============ Estado y empresa ============

def test_estados_excluidos():
    assert estado_excluido("Inactiva")
    assert estado_excluido("draft")
    assert estado_excluido("VENCIDA")
    assert not estado_excluido("active")
    assert not estado_excluido(None)


def test_empresa_sin_distinguir_mayusculas():
    oferta = _oferta(codigoEmpresa="e01")

    assert empresa_coincide(oferta, "E01")
    assert not empresa_coincide(oferta, "E02")
    # Sin empresa de uno u otro lado no se restringe
    assert empresa_coincide(oferta, None)
    assert empresa_coincide(_oferta(), "E02")


# ============ Alcance de cliente ============

def test_codigo_cliente_normalizado():
    oferta = _oferta(scope={"codigosCliente": ["007"]})

    assert cliente_en_alcance(oferta, {"codigoCliente": "7"})
    assert cliente_en_alcance(oferta, {"codigo_cliente": "0007"})
    assert not cliente_en_alcance(oferta, {"codigoCliente": "70"})


def test_canal_compuesto_con_raya(cliente):
    # canal_venta del cliente es "1 — MAYOREO"
    assert cliente_en_alcance(_oferta(scope={"canales": ["1"]}), cliente)
    assert cliente_en_alcance(_oferta(scope={"canales": ["mayoreo"]}), cliente)
    assert cliente_en_alcance(_oferta(scope={"canales": ["01-MINORISTA"]}), cliente)
    assert not cliente_en_alcance(_oferta(scope={"canales": ["2 - MINORISTA"]}), cliente)


def test_dimension_restringida_sin_datos_del_cliente_no_coincide():
    oferta = _oferta(scope={"subCanales": ["TIENDA"]})

    assert motivo_exclusion_cliente(oferta, {"codigoCliente": "C9"}) == "subCanales"


def test_zona_y_vendedor(cliente):
    oferta = _oferta(scope={"departamentos": ["santa cruz"], "vendedores": ["V1"]})

    assert motivo_exclusion_cliente(oferta, cliente, "V1") is None
    assert motivo_exclusion_cliente(oferta, cliente, "V2") == "vendedores"
    assert motivo_exclusion_cliente(oferta, cliente) == "vendedores"
    assert motivo_exclusion_cliente(_oferta(scope={"regiones": ["OCCIDENTE"]}), cliente) == "regiones"


# ============ Alcance de producto ============

def test_producto_por_codigo_y_familia(productos):
    catalogo = indexar_productos(productos)
    por_codigo = _oferta(products=["P1"])
    por_familia = _oferta(scope={"codigosFamilia": ["BEB"]})

    assert producto_en_alcance(por_codigo, "P1", catalogo.get("P1"))
    assert not producto_en_alcance(por_codigo, "P2", catalogo.get("P2"))
    assert producto_en_alcance(por_familia, "P2", catalogo.get("P2"))
    assert not producto_en_alcance(por_familia, "P3", catalogo.get("P3"))


def test_codigo_de_producto_con_ceros(productos):
    catalogo = indexar_productos(productos)
    oferta = _oferta(scope={"codigosProducto": ["7"]})

    assert producto_en_alcance(oferta, "007", catalogo.get("7"))


def test_subfamilia_y_linea_intercambiables(productos):
    catalogo = indexar_productos(productos)

    # GAS es la subfamilia de P1; L30 es la línea de P3
    assert producto_en_alcance(_oferta(codigosLinea=["GAS"]), "P1", catalogo["P1"])
    assert producto_en_alcance(_oferta(subfamilias=["L30"]), "P3", catalogo["P3"])
    assert not producto_en_alcance(_oferta(codigosLinea=["GAS"]), "P2", catalogo["P2"])


def test_proveedor(productos):
    catalogo = indexar_productos(productos)
    oferta = _oferta(scope={"codigosProveedor": ["PRV02"]})

    assert producto_en_alcance(oferta, "P3", catalogo["P3"])
    assert not producto_en_alcance(oferta, "P1", catalogo["P1"])


def test_oferta_abierta_alcanza_cualquier_producto():
    assert producto_en_alcance(_oferta(), "SIN-CATALOGO", None)


def test_producto_fuera_del_catalogo_no_coincide_por_familia():
    assert not producto_en_alcance(_oferta(familias=["BEB"]), "X99", None)
