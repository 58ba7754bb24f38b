"""
Punto de entrada de la aplicación FastAPI.
Configura logging, CORS, handlers de error y monta los routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

import app.models  # noqa: F401  registra todos los modelos en Base.metadata
from app.api.v1.router import api_v1_router
from app.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifecycle ────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Eventos de inicio y cierre de la aplicación."""
    logger.info("%s iniciando en modo %s", settings.APP_NAME, settings.APP_ENV)
    yield
    logger.info("%s cerrando...", settings.APP_NAME)


# ── App ──────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    description="API de control de lotes de reactivos de laboratorio: "
    "inventario, consumos, reservas por agendamiento y trazabilidad por QR",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Exception Handlers ───────────────────────────────
@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    """Dos movimientos concurrentes sobre el mismo lote: gana el primero."""
    logger.warning("Conflicto de versión en %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "El lote fue modificado por otra operación. Intente nuevamente."},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Violación de integridad en %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "El registro entra en conflicto con datos existentes"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura excepciones no manejadas para evitar exponer detalles internos."""
    logger.exception("Error no manejado en %s %s", request.method, request.url.path)
    if settings.DEBUG:
        # En desarrollo, mostrar detalles
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "type": type(exc).__name__},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Error interno del servidor"},
    )


# ── Routers ──────────────────────────────────────────
app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


# ── Health Check ─────────────────────────────────────
@app.get("/health", tags=["Health"])
async def health_check():
    """Endpoint de health check para monitoreo."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "0.1.0",
        "environment": settings.APP_ENV,
    }
