from typing import Any
from datetime import datetime, timezone
from enum import Enum
from sqlmodel import JSON, Column, Field, SQLModel


class OfertaTipo(str, Enum):
    DISCOUNT = "discount"
    BONUS = "bonus"
    COMBO = "combo"
    KIT = "kit"
    PRICELIST = "pricelist"


class Producto(SQLModel, table=True):
    """Producto del catálogo sincronizado. Solo lectura para el motor de ofertas."""
    __tablename__ = "productos"

    codigo_producto: str = Field(primary_key=True)
    descripcion: str | None = None
    precio: float | None = None
    codigo_proveedor: str | None = Field(default=None, index=True)
    codigo_familia: str | None = None
    codigo_subfamilia: str | None = None
    codigo_linea: str | None = None
    # Algunos backends publican la línea como filtro de venta
    codigo_filtro_venta: str | None = None
    linea_venta: str | None = None
    actualizado_en: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def familia(self) -> str | None:
        return self.codigo_familia


class Cliente(SQLModel, table=True):
    __tablename__ = "clientes"

    codigo_cliente: str = Field(primary_key=True)
    nombre_cliente: str | None = None
    # Canal y sub-canal llegan con nombres distintos según el origen
    canal_venta: str | None = None
    canal: str | None = None
    tipo_cliente: str | None = None
    codigo_canal: str | None = None
    canal_codigo: str | None = None
    sub_canal_venta: str | None = None
    sub_canal: str | None = None
    codigo_sub_canal: str | None = None
    departamento: str | None = None
    region: str | None = None
    actualizado_en: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OfertaRegistro(SQLModel, table=True):
    """
    Oferta tal como llegó de la sincronización. El payload se guarda completo
    (incluido el blob legado `raw.ofertaDetalle`) y se normaliza al leerlo.
    """
    __tablename__ = "ofertas"

    id: str = Field(primary_key=True)
    codigo_empresa: str | None = Field(default=None, index=True)
    tipo: str | None = None
    estado: str | None = None
    nombre: str | None = None
    payload: dict = Field(sa_column=Column[Any](JSON), default={})
    eliminado: bool = False
    actualizado_en: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
