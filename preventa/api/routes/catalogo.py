from typing import Any

from fastapi import APIRouter, Depends
from sqlmodel import Session

from preventa.api.deps import get_session
from preventa.schemas.catalogo import (
    ClienteRead,
    ClienteSync,
    OfertaRegistroRead,
    ProductoRead,
    ProductoSync,
    SincronizacionResultado,
)
from preventa.services import catalogo_service
from preventa.services.normalizacion_service import normalizar_oferta

router = APIRouter(prefix="/api/catalogo", tags=["Catálogo"])


@router.put("/productos", response_model=SincronizacionResultado)
def sincronizar_productos(productos: list[ProductoSync], session: Session = Depends(get_session)):
    guardados = catalogo_service.guardar_productos(session, productos)
    return SincronizacionResultado(guardados=guardados)


@router.get("/productos", response_model=list[ProductoRead])
def listar_productos(session: Session = Depends(get_session)):
    return [ProductoRead.model_validate(p, from_attributes=True) for p in catalogo_service.listar_productos(session)]


@router.put("/clientes", response_model=SincronizacionResultado)
def sincronizar_clientes(clientes: list[ClienteSync], session: Session = Depends(get_session)):
    guardados = catalogo_service.guardar_clientes(session, clientes)
    return SincronizacionResultado(guardados=guardados)


@router.get("/clientes", response_model=list[ClienteRead])
def listar_clientes(session: Session = Depends(get_session)):
    return [ClienteRead.model_validate(c, from_attributes=True) for c in catalogo_service.listar_clientes(session)]


@router.put("/ofertas", response_model=SincronizacionResultado)
def sincronizar_ofertas(ofertas: list[dict[str, Any]], session: Session = Depends(get_session)):
    """Recibe las ofertas tal como las publica el backend comercial."""
    guardados = catalogo_service.guardar_ofertas(session, ofertas)
    return SincronizacionResultado(guardados=guardados)


@router.get("/ofertas", response_model=list[OfertaRegistroRead])
def listar_ofertas(codigo_empresa: str | None = None, session: Session = Depends(get_session)):
    registros = catalogo_service.listar_registros_ofertas(session, codigo_empresa)
    return [
        OfertaRegistroRead(
            id=r.id,
            codigo_empresa=r.codigo_empresa,
            tipo=r.tipo,
            estado=r.estado,
            nombre=r.nombre,
            valida=normalizar_oferta({**r.payload, "id": r.id}) is not None,
        )
        for r in registros
    ]
