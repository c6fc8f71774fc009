from sqlmodel import SQLModel, create_engine
from preventa.core.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {},
)


def create_db_and_tables():
    # Registra las tablas en el metadata antes de crearlas
    import preventa.models.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
