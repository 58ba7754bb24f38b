"""
Endpoint del dashboard.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.dashboard import DashboardResponse
from app.services import dashboard_service

router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    recent: int = Query(10, ge=1, le=50, description="Cantidad de movimientos recientes"),
    user: User = Depends(require_permission("dashboard", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Totales, stock por unidad y actividad reciente."""
    return await dashboard_service.get_dashboard(db, recent_limit=recent)
