from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from preventa.api.routes import catalogo, ofertas
from preventa.api.middleware import LoggingMiddleware
from preventa.core.database import create_db_and_tables
from preventa.core.config import settings
from preventa.core.exceptions import EntityNotFoundError, BusinessLogicError


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(
    title="Preventa API",
    description="Motor de ofertas de la app de preventa: descuentos, bonificaciones y aplicación sobre el pedido",
    version="0.1.0",
    lifespan=lifespan,
)

@app.exception_handler(EntityNotFoundError)
async def entity_not_found_exception_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})

@app.exception_handler(BusinessLogicError)
async def business_logic_exception_handler(request: Request, exc: BusinessLogicError):
    return JSONResponse(status_code=400, content={"detail": exc.message})

app.add_middleware(LoggingMiddleware)

app.include_router(catalogo.router)
app.include_router(ofertas.router)


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}


cors_origins = (
    [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "production"
    else ["*"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
