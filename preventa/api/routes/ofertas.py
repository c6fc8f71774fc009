import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session

from preventa.api.deps import get_session
from preventa.core.config import settings
from preventa.core.exceptions import EntityNotFoundError
from preventa.schemas.oferta import (
    AlternarOfertaRequest,
    EvaluacionOfertasRequest,
    OfertaAplicable,
    PedidoOfertasRead,
    RecalculoOfertasRequest,
)
from preventa.schemas.pedido import Pedido
from preventa.services import aplicacion_service, catalogo_service, oferta_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ofertas", tags=["Ofertas"])


def _contexto(session: Session, data: EvaluacionOfertasRequest):
    """Pedido limpio, cliente y catálogo que necesita el motor para evaluar."""
    codigo_empresa = data.codigo_empresa or settings.CODIGO_EMPRESA_DEFAULT
    cliente = catalogo_service.obtener_cliente(session, data.codigo_cliente) if data.codigo_cliente else None
    pedido = Pedido(
        codigo_empresa=codigo_empresa,
        codigo_vendedor=data.codigo_vendedor,
        items=aplicacion_service.limpiar_descuentos(data.items),
    )
    productos = catalogo_service.listar_productos(session)
    ofertas = catalogo_service.listar_ofertas(session, codigo_empresa)
    return pedido, cliente, productos, ofertas


def _pedido_con_ofertas(pedido, aplicables, aplicadas, productos, selecciones) -> PedidoOfertasRead:
    resultado = aplicacion_service.aplicar_secuencia(pedido.items, aplicadas, productos, selecciones)
    aplicadas = aplicacion_service.actualizar_potenciales(aplicadas, resultado)
    return PedidoOfertasRead(
        aplicadas=[a.oferta_id for a in aplicadas],
        aplicables=aplicables,
        resultado=resultado,
    )


@router.post("/aplicables", response_model=list[OfertaAplicable])
def listar_aplicables(data: EvaluacionOfertasRequest, session: Session = Depends(get_session)):
    """Ofertas que aplican al pedido, con sus líneas y beneficio potencial."""
    pedido, cliente, productos, ofertas = _contexto(session, data)
    return oferta_service.obtener_ofertas_aplicables(
        pedido, cliente, productos, ofertas, resolver_conflictos=data.resolver_conflictos
    )


@router.post("/recalcular", response_model=PedidoOfertasRead)
def recalcular_pedido(data: RecalculoOfertasRequest, session: Session = Depends(get_session)):
    """Vuelve a calcular los montos del pedido con las ofertas que ya tenía aplicadas."""
    pedido, cliente, productos, ofertas = _contexto(session, data)
    aplicables = oferta_service.obtener_ofertas_aplicables(pedido, cliente, productos, ofertas)
    aplicadas = aplicacion_service.seleccionar_por_ids(data.aplicadas, aplicables)
    return _pedido_con_ofertas(pedido, aplicables, aplicadas, productos, data.selecciones)


@router.post("/alternar", response_model=PedidoOfertasRead)
def alternar_oferta(data: AlternarOfertaRequest, session: Session = Depends(get_session)):
    """Activa la oferta si no estaba aplicada o la quita si ya lo estaba."""
    pedido, cliente, productos, ofertas = _contexto(session, data)
    aplicables = oferta_service.obtener_ofertas_aplicables(pedido, cliente, productos, ofertas)
    aplicadas = aplicacion_service.seleccionar_por_ids(data.aplicadas, aplicables)

    if data.oferta_id in data.aplicadas:
        # Ya estaba aplicada: se quita aunque haya dejado de aplicar
        aplicadas = [a for a in aplicadas if a.oferta_id != data.oferta_id]
    else:
        candidata = next((a for a in aplicables if a.oferta_id == data.oferta_id), None)
        if candidata is None:
            raise EntityNotFoundError(f"La oferta {data.oferta_id} no aplica a este pedido")
        aplicadas = aplicacion_service.alternar_oferta(candidata, aplicadas, pedido.items, productos)
    logger.info(f"[ofertas] pedido con {len(aplicadas)} ofertas aplicadas tras alternar {data.oferta_id}")
    return _pedido_con_ofertas(pedido, aplicables, aplicadas, productos, data.selecciones)
