from pydantic import Field

from preventa.schemas.pedido import EsquemaBase


class ProductoSync(EsquemaBase):
    codigo_producto: str = Field(min_length=1)
    descripcion: str | None = None
    precio: float | None = None
    codigo_proveedor: str | None = None
    codigo_familia: str | None = None
    codigo_subfamilia: str | None = None
    codigo_linea: str | None = None
    codigo_filtro_venta: str | None = None
    linea_venta: str | None = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "codigoProducto": "1001",
                "descripcion": "Gaseosa 600ml x12",
                "precio": 10,
                "codigoProveedor": "PRV01",
                "codigoFamilia": "BEB",
                "codigoLinea": "GAS",
            }
        }
    }


class ProductoRead(ProductoSync):
    pass


class ClienteSync(EsquemaBase):
    codigo_cliente: str = Field(min_length=1)
    nombre_cliente: str | None = None
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


class ClienteRead(ClienteSync):
    pass


class OfertaRegistroRead(EsquemaBase):
    id: str
    codigo_empresa: str | None = None
    tipo: str | None = None
    estado: str | None = None
    nombre: str | None = None
    # False cuando el registro no supera la normalización y el motor lo ignora
    valida: bool = True


class SincronizacionResultado(EsquemaBase):
    guardados: int
