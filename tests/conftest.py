import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, StaticPool

from preventa.main import app
from preventa.api.deps import get_session
from preventa.models.models import Cliente, Producto

# Base de datos en memoria para los tests
DATABASE_URL = "sqlite://"

@pytest.fixture(name="session")
def session_fixture():
    # El StaticPool es necesario para usar SQLite en memoria con múltiples hilos/conexiones
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)

@pytest.fixture(name="db_session")
def db_session_fixture(session):
    return session

@pytest.fixture(name="client")
def client_fixture(session: Session):
    # Sobrescribimos la dependencia get_session para que use la DB de prueba
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# ============ Datos de catálogo para el motor ============

@pytest.fixture(name="productos")
def productos_fixture():
    return [
        Producto(codigo_producto="P1", descripcion="Gaseosa 600ml", precio=10, codigo_proveedor="PRV01",
                 codigo_familia="BEB", codigo_subfamilia="GAS", codigo_linea="L10"),
        Producto(codigo_producto="P2", descripcion="Agua 500ml", precio=5, codigo_proveedor="PRV01",
                 codigo_familia="BEB", codigo_subfamilia="AGU", codigo_linea="L20"),
        Producto(codigo_producto="P3", descripcion="Galletas", precio=8, codigo_proveedor="PRV02",
                 codigo_familia="ALI", codigo_subfamilia="GAL", codigo_linea="L30"),
        Producto(codigo_producto="007", descripcion="Chicle", precio=1, codigo_proveedor="PRV03",
                 codigo_familia="CON", codigo_linea="L40"),
    ]


@pytest.fixture(name="cliente")
def cliente_fixture():
    return Cliente(
        codigo_cliente="C1",
        nombre_cliente="Almacén Don Pepe",
        canal_venta="1 — MAYOREO",
        sub_canal="TIENDA",
        departamento="Santa Cruz",
        region="ORIENTE",
    )
