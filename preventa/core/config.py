from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"  # "development" | "production"
    FRONTEND_URL: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Database (cache local del catálogo)
    DATABASE_URL: str = "sqlite:///./preventa.db"
    SQL_ECHO: bool = False

    # Empresa por defecto cuando el pedido no trae codigoEmpresa
    CODIGO_EMPRESA_DEFAULT: str = "E01"

    class Config:
        env_file = ".env"

settings = Settings()
