"""
Schemas de gamificación: perfil, conquistas y ranking.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    points: int
    unlocked: bool = False
    unlocked_at: datetime | None = None


class LevelInfo(BaseModel):
    name: str
    min_points: int
    next_level: str | None = None
    next_level_points: int | None = None
    progress_percentage: float


class GamificationProfile(BaseModel):
    user_id: UUID
    full_name: str | None = None
    total_points: int
    level: LevelInfo
    daily_streak: int
    achievements: list[AchievementResponse]


class RankingEntry(BaseModel):
    position: int
    user_id: UUID
    full_name: str
    initials: str
    total_points: int
    level_name: str
    achievements_count: int
