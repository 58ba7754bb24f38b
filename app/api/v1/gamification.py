"""
Endpoints de gamificación: perfil propio, ranking y catálogo de conquistas.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.gamification import AchievementResponse, GamificationProfile, RankingEntry
from app.services import gamification_service

router = APIRouter()


@router.get("/me", response_model=GamificationProfile)
async def my_profile(
    user: User = Depends(require_permission("gamification", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Puntos, nivel, racha y conquistas del usuario autenticado."""
    return await gamification_service.get_profile(db, user.id)


@router.get("/users/{user_id}", response_model=GamificationProfile)
async def user_profile(
    user_id: UUID,
    user: User = Depends(require_permission("gamification", "read")),
    db: AsyncSession = Depends(get_db),
):
    return await gamification_service.get_profile(db, user_id)


@router.get("/ranking", response_model=list[RankingEntry])
async def ranking(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_permission("gamification", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Ranking de usuarios por puntos."""
    return await gamification_service.get_ranking(db, limit=limit)


@router.get("/achievements", response_model=list[AchievementResponse])
async def achievements(
    user: User = Depends(require_permission("gamification", "read")),
):
    """Catálogo de conquistas disponibles."""
    return gamification_service.list_achievements()
