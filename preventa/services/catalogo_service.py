import logging
from datetime import datetime, timezone

from sqlmodel import Session, select

from preventa.core.exceptions import EntityNotFoundError
from preventa.models.models import Cliente, OfertaRegistro, Producto
from preventa.schemas.catalogo import ClienteSync, ProductoSync
from preventa.schemas.oferta import Oferta
from preventa.services.normalizacion_service import normalizar_oferta
from preventa.utils.utils import normalizar_codigo

logger = logging.getLogger(__name__)


# ============ Productos ============

def guardar_productos(session: Session, productos: list[ProductoSync]) -> int:
    """Upsert por codigoProducto. Devuelve la cantidad de registros escritos."""
    for data in productos:
        producto = session.get(Producto, data.codigo_producto)
        if producto is None:
            producto = Producto(codigo_producto=data.codigo_producto)
        for key, value in data.model_dump(exclude={"codigo_producto"}).items():
            setattr(producto, key, value)
        producto.actualizado_en = datetime.now(timezone.utc)
        session.add(producto)

    session.commit()
    logger.info(f"Catálogo: {len(productos)} productos sincronizados")
    return len(productos)


def listar_productos(session: Session) -> list[Producto]:
    return list(session.exec(select(Producto).order_by(Producto.codigo_producto)).all())


# ============ Clientes ============

def guardar_clientes(session: Session, clientes: list[ClienteSync]) -> int:
    for data in clientes:
        cliente = session.get(Cliente, data.codigo_cliente)
        if cliente is None:
            cliente = Cliente(codigo_cliente=data.codigo_cliente)
        for key, value in data.model_dump(exclude={"codigo_cliente"}).items():
            setattr(cliente, key, value)
        cliente.actualizado_en = datetime.now(timezone.utc)
        session.add(cliente)

    session.commit()
    logger.info(f"Catálogo: {len(clientes)} clientes sincronizados")
    return len(clientes)


def listar_clientes(session: Session) -> list[Cliente]:
    return list(session.exec(select(Cliente).order_by(Cliente.codigo_cliente)).all())


def obtener_cliente(session: Session, codigo_cliente: str) -> Cliente:
    """Busca por código exacto y, si no, por código normalizado ("007" == "7")."""
    cliente = session.get(Cliente, codigo_cliente)
    if cliente:
        return cliente

    buscado = normalizar_codigo(codigo_cliente)
    cliente = next(
        (c for c in listar_clientes(session) if normalizar_codigo(c.codigo_cliente) == buscado),
        None,
    )
    if not cliente:
        raise EntityNotFoundError("Cliente no encontrado")
    return cliente


# ============ Ofertas ============

def guardar_ofertas(session: Session, registros: list[dict]) -> int:
    """
    Guarda las ofertas tal como llegan. La normalización ocurre al leerlas,
    así que un registro inválido se conserva pero no participa del motor.
    """
    guardadas = 0
    for data in registros:
        oferta_id = data.get("id") or data.get("serverId")
        if oferta_id is None:
            logger.warning("Oferta sin id ignorada en la sincronización")
            continue

        registro = session.get(OfertaRegistro, str(oferta_id))
        if registro is None:
            registro = OfertaRegistro(id=str(oferta_id))
        registro.codigo_empresa = data.get("codigoEmpresa")
        registro.tipo = data.get("type")
        registro.estado = data.get("status")
        registro.nombre = data.get("name")
        registro.payload = data
        registro.eliminado = bool(data.get("deleted", False))
        registro.actualizado_en = datetime.now(timezone.utc)
        session.add(registro)
        guardadas += 1

    session.commit()
    logger.info(f"Catálogo: {guardadas} ofertas sincronizadas")
    return guardadas


def listar_registros_ofertas(session: Session, codigo_empresa: str | None = None) -> list[OfertaRegistro]:
    statement = select(OfertaRegistro).where(OfertaRegistro.eliminado == False)
    registros = session.exec(statement.order_by(OfertaRegistro.id)).all()
    if not codigo_empresa:
        return list(registros)
    # Las ofertas sin empresa aplican a cualquiera
    return [
        r for r in registros
        if not r.codigo_empresa or r.codigo_empresa.strip().lower() == codigo_empresa.strip().lower()
    ]


def listar_ofertas(session: Session, codigo_empresa: str | None = None) -> list[Oferta]:
    """Ofertas del cache ya normalizadas; las que no se pueden interpretar quedan fuera."""
    ofertas = []
    for registro in listar_registros_ofertas(session, codigo_empresa):
        oferta = normalizar_oferta({**registro.payload, "id": registro.id})
        if oferta is not None:
            ofertas.append(oferta)
    return ofertas
