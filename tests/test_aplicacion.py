import pytest

from preventa.core.exceptions import BusinessLogicError, EntityNotFoundError
from preventa.models.models import Cliente
from preventa.schemas.pedido import ItemPedido, Pedido
from preventa.services.aplicacion_service import (
    SesionPedido,
    actualizar_cantidad,
    agregar_item,
    alternar_oferta,
    aplicar_secuencia,
    limpiar_descuentos,
    quitar_item,
)
from preventa.services.oferta_service import obtener_ofertas_aplicables


def _item(item_id, producto_id, cantidad, precio=10, **campos):
    return ItemPedido(id=item_id, producto_id=producto_id, cantidad=cantidad, precio_unitario=precio, **campos)


def _descuento(oferta_id, percent, **campos):
    return {"id": oferta_id, "type": "discount", "discount": {"percent": percent}, **campos}


# A: 25% de 200 = 50, B: 15% de 200 = 30, ninguna se combina en P1
EXCLUSIVAS = [
    _descuento("A", 25, products=["P1"], stackableWithSameProduct=False),
    _descuento("B", 15, products=["P1"], stackableWithSameProduct=False),
]


def _aplicables(items, productos, cliente, ofertas):
    return obtener_ofertas_aplicables(Pedido(items=items), cliente, productos, ofertas)


def _alternar(oferta_id, aplicadas, aplicables, items, productos):
    candidata = next(a for a in aplicables if a.oferta_id == oferta_id)
    return alternar_oferta(candidata, aplicadas, items, productos)


# ============ Alternar ofertas ============

@pytest.mark.parametrize("orden", [["A", "B"], ["B", "A"]])
def test_exclusivas_queda_la_de_mayor_descuento(orden, productos, cliente):
    # 1. PREPARAR
    items = [_item("1", "P1", 20)]
    aplicables = _aplicables(items, productos, cliente, EXCLUSIVAS)

    # 2. ACTUAR: se activan las dos, en uno u otro orden
    aplicadas = []
    for oferta_id in orden:
        aplicadas = _alternar(oferta_id, aplicadas, aplicables, items, productos)
    resultado = aplicar_secuencia(items, aplicadas, productos)

    # 3. AFIRMAR
    assert [a.oferta_id for a in aplicadas] == ["A"]
    assert resultado.descuento_total == 50.0
    assert resultado.subtotal == 150.0


def test_desactivar_y_reactivar_no_duplica(productos, cliente):
    sesion = SesionPedido(productos, EXCLUSIVAS, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 20))

    sesion.alternar_oferta("A")
    assert sesion.resultado.descuento_total == 50.0

    sesion.alternar_oferta("A")
    assert sesion.ids_aplicadas == []
    assert sesion.resultado.descuento_total == 0
    assert sesion.resultado.subtotal == 200.0

    sesion.alternar_oferta("A")
    assert sesion.ids_aplicadas == ["A"]
    assert sesion.resultado.descuento_total == 50.0
    assert sesion.resultado.subtotal == 150.0


def test_alternar_oferta_desconocida(productos, cliente):
    sesion = SesionPedido(productos, EXCLUSIVAS, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 20))

    with pytest.raises(EntityNotFoundError):
        sesion.alternar_oferta("NO-EXISTE")


# ============ Recalculo ============

def test_porcentajes_se_suman_sin_encadenar(productos, cliente):
    items = [_item("1", "P1", 20)]
    ofertas = [_descuento("A", 10, products=["P1"]), _descuento("B", 5, products=["P1"])]
    aplicadas = _aplicables(items, productos, cliente, ofertas)

    resultado = aplicar_secuencia(items, aplicadas, productos)

    # 15% de 200, no 200 * 0.9 * 0.95
    assert resultado.descuento_total == 30.0
    assert resultado.subtotal == 170.0
    assert resultado.descuento_por_oferta == {"A": 20.0, "B": 10.0}
    assert resultado.items[0].descuento_linea == 30.0
    assert resultado.items[0].subtotal_sin_descuento == 200.0


def test_aplicar_dos_veces_da_el_mismo_resultado(productos, cliente):
    items = [_item("1", "P1", 20), _item("2", "P2", 7, 5)]
    ofertas = [_descuento("A", 10), _descuento("B", 5, products=["P2"])]
    aplicadas = _aplicables(items, productos, cliente, ofertas)

    primero = aplicar_secuencia(items, aplicadas, productos)
    segundo = aplicar_secuencia(primero.items, aplicadas, productos)

    assert segundo.model_dump() == primero.model_dump()


def test_descuento_limitado_al_bruto(productos, cliente):
    items = [_item("1", "P1", 2)]
    ofertas = [
        _descuento("A", 70, products=["P1"]),
        {"id": "B", "type": "discount", "discount": {"percent": 60, "amount": 50}, "products": ["P1"]},
    ]
    aplicadas = _aplicables(items, productos, cliente, ofertas)

    resultado = aplicar_secuencia(items, aplicadas, productos)

    assert resultado.items[0].descuento_linea == 20.0
    assert resultado.items[0].subtotal == 0
    assert resultado.subtotal == 0


def test_limpiar_descuentos_vuelve_al_bruto():
    items = [
        _item("1", "P1", 3, descuento_linea=10, subtotal=20, total=20),
        _item("b", "P1", 1, es_bonificacion=True, subtotal_sin_descuento=10, descuento_linea=10),
    ]

    limpios = limpiar_descuentos(items)

    assert len(limpios) == 1
    assert limpios[0].descuento_linea is None
    assert limpios[0].subtotal == 30.0
    assert limpios[0].total == 30.0


# ============ Bonificaciones ============

def test_lineas_bonificadas_se_regeneran(productos, cliente):
    ofertas = [{"id": "BON", "type": "bonus", "name": "10+1", "bonus": {"everyN": 10, "givesM": 1}, "products": ["P1"]}]
    sesion = SesionPedido(productos, ofertas, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 20))

    sesion.alternar_oferta("BON")
    sesion.refrescar()

    bonificadas = [i for i in sesion.items if i.es_bonificacion]
    assert len(bonificadas) == 1
    assert bonificadas[0].producto_id == "P1"
    assert bonificadas[0].cantidad == 2
    assert bonificadas[0].subtotal == 0
    assert bonificadas[0].promo_bonificacion_id == "BON"
    assert bonificadas[0].items_relacionados == ["1"]
    assert sesion.resultado.valor_bonificado == 20.0
    # La línea gratis no cambia el subtotal cobrado
    assert sesion.resultado.subtotal == 200.0


def test_bonificacion_pendiente_de_seleccion(productos, cliente):
    ofertas = [{"id": "BON", "type": "bonus", "bonus": {"everyN": 10, "givesM": 1, "target": {"type": "sku"}}}]
    sesion = SesionPedido(productos, ofertas, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 20))
    sesion.alternar_oferta("BON")

    assert sesion.resultado.bonificaciones_pendientes == ["BON"]
    assert not any(i.es_bonificacion for i in sesion.items)

    sesion.seleccionar_bonificacion("BON", "P2")

    bonificada = next(i for i in sesion.items if i.es_bonificacion)
    assert bonificada.producto_id == "P2"
    assert bonificada.subtotal_sin_descuento == 10.0
    assert sesion.resultado.bonificaciones_pendientes == []


def test_seleccion_de_producto_inexistente(productos, cliente):
    sesion = SesionPedido(productos, [], cliente=cliente)
    with pytest.raises(EntityNotFoundError):
        sesion.seleccionar_bonificacion("BON", "NO-EXISTE")


# ============ Edición del carrito ============

def test_cambio_de_cantidad_recalcula_tramo(productos, cliente):
    ofertas = [{"id": "T", "type": "discount", "discount": {"tiers": [
        {"from": 12, "to": 23, "percent": 5},
        {"from": 24, "to": 47, "percent": 7},
        {"from": 48, "percent": 9},
    ]}}]
    sesion = SesionPedido(productos, ofertas, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 30))
    sesion.alternar_oferta("T")
    assert sesion.resultado.descuento_total == 21.0

    sesion.actualizar_cantidad("1", 48)
    assert sesion.resultado.descuento_total == 43.2
    assert sesion.aplicadas[0].descuento_potencial == 43.2

    # Por debajo del primer tramo la oferta deja de aplicar
    sesion.actualizar_cantidad("1", 5)
    assert sesion.ids_aplicadas == []
    assert sesion.resultado.descuento_total == 0


def test_cambio_de_cliente_quita_ofertas_fuera_de_alcance(productos, cliente):
    ofertas = [_descuento("MAY", 10, scope={"canales": ["MAYOREO"]})]
    sesion = SesionPedido(productos, ofertas, cliente=cliente)
    sesion.agregar_item(_item("1", "P1", 10))
    sesion.alternar_oferta("MAY")
    assert sesion.ids_aplicadas == ["MAY"]

    sesion.cambiar_cliente(Cliente(codigo_cliente="C2", canal_venta="MINORISTA"))

    assert sesion.aplicables == []
    assert sesion.ids_aplicadas == []
    assert sesion.resultado.subtotal == 100.0


def test_sin_cambios_no_se_publica(productos, cliente):
    sesion = SesionPedido(productos, EXCLUSIVAS, cliente=cliente)
    assert sesion.agregar_item(_item("1", "P1", 20)) is True
    assert sesion.alternar_oferta("A") is True
    revision = sesion.revision

    assert sesion.refrescar() is False
    assert sesion.cambiar_cliente(cliente) is False
    assert sesion.revision == revision


def test_edicion_de_items():
    items = [_item("1", "P1", 2), _item("2", "P2", 1)]

    assert [i.cantidad for i in actualizar_cantidad(items, "1", 4)] == [4, 1]
    assert [i.id for i in actualizar_cantidad(items, "1", 0)] == ["2"]
    assert [i.id for i in quitar_item(items, "2")] == ["1"]
    assert [i.id for i in agregar_item(items, _item("3", "P3", 1))] == ["1", "2", "3"]


def test_edicion_invalida():
    items = [_item("1", "P1", 2)]

    with pytest.raises(BusinessLogicError):
        actualizar_cantidad(items, "1", -1)
    with pytest.raises(EntityNotFoundError):
        actualizar_cantidad(items, "9", 1)
    with pytest.raises(BusinessLogicError):
        agregar_item(items, _item("1", "P1", 1))
    with pytest.raises(BusinessLogicError):
        agregar_item(items, _item("2", "P2", 0))
