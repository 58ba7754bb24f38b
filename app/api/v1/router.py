"""
Router principal de la API v1.
Agrupa todos los sub-routers de la versión 1.
"""

from fastapi import APIRouter

from app.api.v1.auth import router as auth_router
from app.api.v1.users import router as users_router
from app.api.v1.catalog import router as catalog_router
from app.api.v1.lots import router as lots_router
from app.api.v1.scanner import router as scanner_router
from app.api.v1.appointments import router as appointments_router
from app.api.v1.logs import router as logs_router
from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.gamification import router as gamification_router

api_v1_router = APIRouter()

api_v1_router.include_router(
    auth_router,
    prefix="/auth",
    tags=["Autenticación"],
)

api_v1_router.include_router(
    users_router,
    prefix="/users",
    tags=["Usuarios"],
)

api_v1_router.include_router(
    catalog_router,
    tags=["Catálogo"],
)

api_v1_router.include_router(
    lots_router,
    prefix="/lots",
    tags=["Lotes de Reactivos"],
)

api_v1_router.include_router(
    scanner_router,
    prefix="/scanner",
    tags=["Escáner QR"],
)

api_v1_router.include_router(
    appointments_router,
    prefix="/appointments",
    tags=["Agendamientos"],
)

api_v1_router.include_router(
    logs_router,
    prefix="/logs",
    tags=["Logs"],
)

api_v1_router.include_router(
    dashboard_router,
    prefix="/dashboard",
    tags=["Dashboard"],
)

api_v1_router.include_router(
    gamification_router,
    prefix="/gamification",
    tags=["Gamificación"],
)
