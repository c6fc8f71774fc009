import logging
from datetime import date
from typing import Any, Iterable

from preventa.core.exceptions import BusinessLogicError, EntityNotFoundError
from preventa.models.models import OfertaTipo
from preventa.schemas.oferta import Oferta, OfertaAplicable
from preventa.schemas.pedido import ItemPedido, Pedido, ResultadoAplicacion
from preventa.services.alcance_service import buscar_producto, indexar_productos
from preventa.services.apilamiento_service import mejor_oferta, ofertas_en_conflicto
from preventa.services.bonificacion_service import calcular_bonificacion
from preventa.services.descuento_service import tasas_por_item
from preventa.services.oferta_service import evaluar_oferta, obtener_ofertas_aplicables
from preventa.utils.utils import leer_campo, redondear

logger = logging.getLogger(__name__)


# ============ Limpieza y comparación ============

def limpiar_descuentos(items: Iterable[ItemPedido]) -> list[ItemPedido]:
    """Quita las líneas bonificadas y deja cada línea en su bruto, sin descuento."""
    limpios = []
    for item in items:
        if item.es_bonificacion:
            continue
        bruto = item.bruto
        limpios.append(item.model_copy(update={
            "subtotal_sin_descuento": bruto,
            "descuento_linea": None,
            "subtotal": bruto,
            "total": bruto,
        }))
    return limpios


CAMPOS_COMPARADOS = (
    "id", "producto_id", "cantidad", "precio_unitario",
    "subtotal_sin_descuento", "descuento_linea", "subtotal", "total",
    "es_bonificacion",
)


def items_iguales(a: list[ItemPedido], b: list[ItemPedido]) -> bool:
    if len(a) != len(b):
        return False
    for previo, nuevo in zip(a, b):
        for campo in CAMPOS_COMPARADOS:
            if getattr(previo, campo) != getattr(nuevo, campo):
                return False
    return True


def ofertas_iguales(a: list[OfertaAplicable], b: list[OfertaAplicable]) -> bool:
    if len(a) != len(b):
        return False
    for previa, nueva in zip(a, b):
        if previa.oferta_id != nueva.oferta_id:
            return False
        if previa.descuento_potencial != nueva.descuento_potencial:
            return False
        if previa.cantidad_bonificacion_potencial != nueva.cantidad_bonificacion_potencial:
            return False
        if previa.items_ids != nueva.items_ids:
            return False
    return True


# ============ Conjunto de ofertas aplicadas ============

def reevaluar_aplicadas(
    aplicadas: Iterable[OfertaAplicable], items: Iterable[ItemPedido], productos
) -> list[OfertaAplicable]:
    """Recalcula líneas y beneficio de cada oferta aplicada contra el carrito limpio."""
    limpios = limpiar_descuentos(items)
    vigentes = []
    for aplicada in aplicadas:
        nueva = evaluar_oferta(aplicada.oferta, limpios, productos)
        if nueva is None:
            logger.info(f"[ofertas] {aplicada.oferta_id} dejó de aplicar tras editar el pedido")
            continue
        vigentes.append(nueva)
    return vigentes


def filtrar_vigentes(
    aplicadas: Iterable[OfertaAplicable], aplicables: Iterable[OfertaAplicable]
) -> list[OfertaAplicable]:
    """
    Conserva solo las aplicadas que siguen en la lista de aplicables (p. ej.
    tras cambiar de cliente), tomando la versión recién calculada de cada una.
    """
    frescas = {a.oferta_id: a for a in aplicables}
    vigentes = []
    for aplicada in aplicadas:
        fresca = frescas.get(aplicada.oferta_id)
        if fresca is None:
            logger.info(f"[ofertas] {aplicada.oferta_id} ya no aplica y se quita del pedido")
            continue
        vigentes.append(fresca)
    return vigentes


def seleccionar_por_ids(ids: Iterable[str], aplicables: Iterable[OfertaAplicable]) -> list[OfertaAplicable]:
    """Ofertas aplicadas (por id, en ese orden) que siguen siendo aplicables."""
    frescas = {a.oferta_id: a for a in aplicables}
    seleccion = []
    for oferta_id in ids:
        fresca = frescas.get(str(oferta_id))
        if fresca is None:
            logger.info(f"[ofertas] {oferta_id} ya no aplica y se quita del pedido")
            continue
        if fresca not in seleccion:
            seleccion.append(fresca)
    return seleccion


def alternar_oferta(
    candidata: OfertaAplicable,
    aplicadas: list[OfertaAplicable],
    items: Iterable[ItemPedido],
    productos,
) -> list[OfertaAplicable]:
    """
    Activa o desactiva una oferta.

    Si ya estaba aplicada se quita. Si no, se recalculan las aplicadas y la
    candidata sobre el carrito limpio; cuando la candidata choca con ofertas
    aplicadas que no se pueden combinar, queda la de mayor beneficio: o la
    candidata reemplaza a las que choca, o el conjunto no cambia.
    """
    if any(a.oferta_id == candidata.oferta_id for a in aplicadas):
        return [a for a in aplicadas if a.oferta_id != candidata.oferta_id]

    limpios = limpiar_descuentos(items)
    vigentes = reevaluar_aplicadas(aplicadas, limpios, productos)
    nueva = evaluar_oferta(candidata.oferta, limpios, productos)
    if nueva is None:
        logger.info(f"[ofertas] {candidata.oferta_id} no aplica al carrito actual")
        return vigentes

    conflictos = [a for a in vigentes if ofertas_en_conflicto(a, nueva)]
    if not conflictos:
        return [*vigentes, nueva]

    # Las aplicadas van primero: en empate se mantienen
    ganadora = mejor_oferta([*conflictos, nueva])
    if ganadora is not nueva:
        logger.info(
            f"[ofertas] {nueva.oferta_id} no se combina con {ganadora.oferta_id}, "
            f"que ofrece un beneficio mayor o igual"
        )
        return vigentes

    descartadas = {a.oferta_id for a in conflictos}
    logger.info(f"[ofertas] {nueva.oferta_id} reemplaza a {sorted(descartadas)}")
    return [*(a for a in vigentes if a.oferta_id not in descartadas), nueva]


# ============ Recalculo de montos ============

def _lineas_bonificadas(
    aplicada: OfertaAplicable,
    limpios: list[ItemPedido],
    catalogo: dict[str, Any],
    selecciones: dict[str, str],
) -> tuple[list[ItemPedido], bool]:
    """Líneas gratis de una oferta bonus. El bool indica si falta que el usuario elija producto."""
    oferta = aplicada.oferta
    origen = [item for item in limpios if item.id in aplicada.items_ids]
    resultado = calcular_bonificacion(oferta, origen, catalogo)
    por_id = {item.id: item for item in origen}

    lineas = []
    pendiente = False
    for indice, aplicacion in enumerate(resultado.aplicaciones):
        producto_id = aplicacion.producto_resuelto or selecciones.get(oferta.id)
        if producto_id is None:
            pendiente = True
            continue

        producto = buscar_producto(producto_id, catalogo)
        precio = leer_campo(producto, "precio")
        if precio is None:
            item_origen = por_id.get(aplicacion.items_origen[0]) if aplicacion.items_origen else None
            precio = item_origen.precio_unitario if item_origen else 0

        cantidad = aplicacion.cantidad_bonificada
        if float(cantidad).is_integer():
            cantidad = int(cantidad)
        bruto = redondear(precio * cantidad)
        lineas.append(ItemPedido(
            id=f"{oferta.id}-bonus-{indice}",
            producto_id=str(producto_id),
            descripcion=leer_campo(producto, "descripcion") or f"Bonificación - {oferta.nombre or oferta.id}",
            cantidad=cantidad,
            precio_unitario=precio,
            subtotal_sin_descuento=bruto,
            descuento_linea=bruto,
            subtotal=0,
            total=0,
            es_bonificacion=True,
            promo_bonificacion_id=oferta.id,
            items_relacionados=aplicacion.items_origen,
        ))
    return lineas, pendiente


def aplicar_secuencia(
    items: Iterable[ItemPedido],
    aplicadas: Iterable[OfertaAplicable],
    productos=None,
    selecciones: dict[str, str] | None = None,
) -> ResultadoAplicacion:
    """
    Precio final del carrito con las ofertas aplicadas.

    Siempre parte del bruto: los porcentajes y montos fijos de todas las
    ofertas que alcanzan una línea se suman (no se encadenan), el porcentaje
    total se limita a [0, 100] y el neto nunca es negativo. Aplicar dos veces
    el mismo conjunto da exactamente los mismos montos.
    """
    limpios = limpiar_descuentos(items)
    aplicadas = list(aplicadas)
    catalogo = indexar_productos(productos)
    selecciones = selecciones or {}

    porcentajes: dict[str, float] = {}
    fijos: dict[str, float] = {}
    aportes: dict[str, float] = {}
    for aplicada in aplicadas:
        if aplicada.oferta.tipo != OfertaTipo.DISCOUNT:
            continue
        alcanzadas = [item for item in limpios if item.id in aplicada.items_ids]
        tasas = tasas_por_item(aplicada.oferta, alcanzadas)
        aporte = 0.0
        for item in alcanzadas:
            tasa = tasas.get(item.id)
            if tasa is None:
                continue
            porcentajes[item.id] = porcentajes.get(item.id, 0) + tasa.porcentaje
            fijos[item.id] = fijos.get(item.id, 0) + tasa.monto
            aporte += tasa.descuento(item)
        aportes[aplicada.oferta_id] = redondear(aporte)

    precios = []
    for item in limpios:
        bruto = item.bruto
        if item.id not in porcentajes:
            precios.append(item)
            continue
        porcentaje = min(max(porcentajes[item.id], 0), 100)
        descuento = bruto * porcentaje / 100 + fijos[item.id] * item.cantidad
        descuento = redondear(min(max(descuento, 0), bruto))
        neto = redondear(max(0, bruto - descuento))
        precios.append(item.model_copy(update={
            "subtotal_sin_descuento": bruto,
            "descuento_linea": descuento,
            "subtotal": neto,
            "total": neto,
        }))

    bonificadas: list[ItemPedido] = []
    pendientes: list[str] = []
    for aplicada in aplicadas:
        if aplicada.oferta.tipo != OfertaTipo.BONUS:
            continue
        lineas, pendiente = _lineas_bonificadas(aplicada, limpios, catalogo, selecciones)
        bonificadas.extend(lineas)
        if pendiente:
            pendientes.append(aplicada.oferta_id)

    return ResultadoAplicacion(
        items=[*precios, *bonificadas],
        subtotal_bruto=redondear(sum(item.bruto for item in precios)),
        descuento_total=redondear(sum(item.descuento_linea or 0 for item in precios)),
        valor_bonificado=redondear(sum(item.subtotal_sin_descuento or 0 for item in bonificadas)),
        subtotal=redondear(sum(item.subtotal or 0 for item in precios)),
        descuento_por_oferta=aportes,
        bonificaciones_pendientes=pendientes,
    )


def actualizar_potenciales(
    aplicadas: Iterable[OfertaAplicable], resultado: ResultadoAplicacion
) -> list[OfertaAplicable]:
    """Refleja en cada oferta de descuento aplicada el monto que efectivamente aportó."""
    actualizadas = []
    for aplicada in aplicadas:
        if aplicada.oferta_id in resultado.descuento_por_oferta:
            aplicada = aplicada.model_copy(
                update={"descuento_potencial": resultado.descuento_por_oferta[aplicada.oferta_id]}
            )
        actualizadas.append(aplicada)
    return actualizadas


# ============ Edición del carrito ============

def _posicion(items: list[ItemPedido], item_id: str) -> int:
    for posicion, item in enumerate(items):
        if item.id == item_id:
            return posicion
    raise EntityNotFoundError(f"Item {item_id} no encontrado en el pedido")


def actualizar_cantidad(items: Iterable[ItemPedido], item_id: str, cantidad: float) -> list[ItemPedido]:
    if cantidad < 0:
        raise BusinessLogicError("La cantidad no puede ser negativa")
    limpios = limpiar_descuentos(items)
    posicion = _posicion(limpios, item_id)
    if cantidad == 0:
        return limpios[:posicion] + limpios[posicion + 1:]
    editado = limpios[posicion].model_copy(update={"cantidad": cantidad})
    limpios[posicion] = limpiar_descuentos([editado])[0]
    return limpios


def agregar_item(items: Iterable[ItemPedido], item: ItemPedido) -> list[ItemPedido]:
    if item.cantidad <= 0:
        raise BusinessLogicError("La cantidad de los productos debe ser mayor a 0")
    limpios = limpiar_descuentos(items)
    if any(existente.id == item.id for existente in limpios):
        raise BusinessLogicError(f"El item {item.id} ya está en el pedido")
    return [*limpios, *limpiar_descuentos([item])]


def quitar_item(items: Iterable[ItemPedido], item_id: str) -> list[ItemPedido]:
    limpios = limpiar_descuentos(items)
    posicion = _posicion(limpios, item_id)
    return limpios[:posicion] + limpios[posicion + 1:]


# ============ Estado del pedido en edición ============

class SesionPedido:
    """
    Pedido en edición: carrito, cliente y ofertas aplicadas.

    Cada operación recalcula desde el carrito limpio y solo publica el estado
    nuevo si cambió algo (la `revision` sube únicamente en ese caso), de modo
    que quien reaccione a los cambios no entre en un ciclo de recalculos.
    """

    def __init__(
        self,
        productos,
        ofertas: Iterable[Oferta | dict],
        cliente: Any = None,
        codigo_empresa: str | None = None,
        codigo_vendedor: str | None = None,
        hoy: date | None = None,
    ):
        self.catalogo = indexar_productos(productos)
        self.ofertas = list(ofertas or [])
        self.cliente = cliente
        self.codigo_empresa = codigo_empresa
        self.codigo_vendedor = codigo_vendedor
        self.hoy = hoy

        self.items: list[ItemPedido] = []
        self.aplicables: list[OfertaAplicable] = []
        self.aplicadas: list[OfertaAplicable] = []
        self.selecciones: dict[str, str] = {}
        self.resultado = ResultadoAplicacion(items=[])
        self.revision = 0

    @property
    def pedido(self) -> Pedido:
        return Pedido(
            codigo_empresa=self.codigo_empresa,
            codigo_vendedor=self.codigo_vendedor,
            items=limpiar_descuentos(self.items),
        )

    @property
    def ids_aplicadas(self) -> list[str]:
        return [a.oferta_id for a in self.aplicadas]

    def _publicar(
        self,
        items: list[ItemPedido],
        aplicables: list[OfertaAplicable],
        aplicadas: list[OfertaAplicable],
        resultado: ResultadoAplicacion,
    ) -> bool:
        cambio = (
            not items_iguales(self.items, items)
            or not ofertas_iguales(self.aplicables, aplicables)
            or not ofertas_iguales(self.aplicadas, aplicadas)
            or self.resultado.bonificaciones_pendientes != resultado.bonificaciones_pendientes
        )
        if not cambio:
            return False
        self.items = items
        self.aplicables = aplicables
        self.aplicadas = aplicadas
        self.resultado = resultado
        self.revision += 1
        return True

    def _recalcular(self, items: list[ItemPedido], aplicadas: list[OfertaAplicable]) -> bool:
        limpios = limpiar_descuentos(items)
        pedido = Pedido(
            codigo_empresa=self.codigo_empresa,
            codigo_vendedor=self.codigo_vendedor,
            items=limpios,
        )
        aplicables = obtener_ofertas_aplicables(pedido, self.cliente, self.catalogo, self.ofertas, hoy=self.hoy)
        aplicadas = filtrar_vigentes(aplicadas, aplicables)
        vigentes = set(a.oferta_id for a in aplicadas)
        self.selecciones = {k: v for k, v in self.selecciones.items() if k in vigentes}

        resultado = aplicar_secuencia(limpios, aplicadas, self.catalogo, self.selecciones)
        aplicadas = actualizar_potenciales(aplicadas, resultado)
        return self._publicar(resultado.items, aplicables, aplicadas, resultado)

    def refrescar(self) -> bool:
        return self._recalcular(self.items, self.aplicadas)

    def cambiar_cliente(self, cliente: Any) -> bool:
        self.cliente = cliente
        return self.refrescar()

    def agregar_item(self, item: ItemPedido) -> bool:
        return self._recalcular(agregar_item(self.items, item), self.aplicadas)

    def actualizar_cantidad(self, item_id: str, cantidad: float) -> bool:
        return self._recalcular(actualizar_cantidad(self.items, item_id, cantidad), self.aplicadas)

    def quitar_item(self, item_id: str) -> bool:
        return self._recalcular(quitar_item(self.items, item_id), self.aplicadas)

    def alternar_oferta(self, oferta_id: str) -> bool:
        candidata = next(
            (a for a in [*self.aplicadas, *self.aplicables] if a.oferta_id == str(oferta_id)),
            None,
        )
        if candidata is None:
            raise EntityNotFoundError(f"La oferta {oferta_id} no aplica a este pedido")
        aplicadas = alternar_oferta(candidata, self.aplicadas, self.items, self.catalogo)
        return self._recalcular(self.items, aplicadas)

    def seleccionar_bonificacion(self, oferta_id: str, producto_id: str) -> bool:
        if buscar_producto(producto_id, self.catalogo) is None:
            raise EntityNotFoundError(f"Producto {producto_id} no encontrado")
        self.selecciones[str(oferta_id)] = str(producto_id)
        return self.refrescar()
