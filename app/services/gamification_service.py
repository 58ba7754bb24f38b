"""
Servicio de gamificación.

Cada movimiento del ledger otorga puntos al usuario que lo ejecuta
(dobles si el lote es crítico). Los puntos se guardan en el log y se
acumulan en `user_gamification`, junto con el nivel y las conquistas
que se pueden derivar del propio ledger.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.gamification import UserGamification
from app.models.reagent_lot import ConsumptionAction, ConsumptionLog
from app.models.user import User
from app.schemas.gamification import (
    AchievementResponse,
    GamificationProfile,
    LevelInfo,
    RankingEntry,
)

logger = logging.getLogger(__name__)


# ── Tablas de reglas ──────────────────────────────────

POINTS_BY_ACTION: dict[ConsumptionAction, int] = {
    ConsumptionAction.REGISTER: 10,
    ConsumptionAction.CONSUME: 5,
    ConsumptionAction.TRANSFER: 5,
    ConsumptionAction.ADJUST: 2,
    ConsumptionAction.DISPOSE: 8,
}
CRITICAL_MULTIPLIER = 2

# (nombre, puntos mínimos) en orden ascendente
LEVEL_THRESHOLDS: list[tuple[str, int]] = [
    ("Iniciante", 0),
    ("Aprendiz", 100),
    ("Competente", 300),
    ("Proficiente", 600),
    ("Especialista", 1000),
    ("Mestre", 2000),
    ("Lenda", 5000),
]

ACHIEVEMENTS: dict[str, dict] = {
    "first_registration": {
        "name": "Primeiro Registro",
        "description": "Registrou seu primeiro reagente no sistema",
        "points": 50,
    },
    "accuracy_master": {
        "name": "Mestre da Precisão",
        "description": "Registrou 10 consumos sem erros",
        "points": 100,
    },
    "sustainability_hero": {
        "name": "Herói da Sustentabilidade",
        "description": "Evitou 5 descartes por vencimento",
        "points": 150,
    },
    "speed_demon": {
        "name": "Demônio da Velocidade",
        "description": "Processou 20 registros em um dia",
        "points": 200,
    },
    "quality_guardian": {
        "name": "Guardião da Qualidade",
        "description": "Realizou 25 controles de qualidade",
        "points": 250,
    },
    "streak_champion": {
        "name": "Campeão da Sequência",
        "description": "Manteve uma sequência de 30 dias ativos",
        "points": 300,
    },
}

ACCURACY_MASTER_CONSUMPTIONS = 10
SPEED_DEMON_DAILY_LOGS = 20
STREAK_CHAMPION_DAYS = 30


# ── Helpers puros ─────────────────────────────────────


def points_for(action: ConsumptionAction, is_critical: bool = False) -> int:
    """Puntos que otorga un movimiento del ledger."""
    points = POINTS_BY_ACTION.get(action, 0)
    if is_critical:
        points *= CRITICAL_MULTIPLIER
    return points


def level_for(points: int) -> str:
    """Nombre del nivel correspondiente a un total de puntos."""
    name = LEVEL_THRESHOLDS[0][0]
    for level_name, min_points in LEVEL_THRESHOLDS:
        if points >= min_points:
            name = level_name
    return name


def level_info(points: int) -> LevelInfo:
    """Nivel actual, siguiente nivel y progreso porcentual hacia él."""
    current_idx = 0
    for idx, (_, min_points) in enumerate(LEVEL_THRESHOLDS):
        if points >= min_points:
            current_idx = idx

    name, min_points = LEVEL_THRESHOLDS[current_idx]
    if current_idx + 1 >= len(LEVEL_THRESHOLDS):
        return LevelInfo(name=name, min_points=min_points, progress_percentage=100.0)

    next_name, next_points = LEVEL_THRESHOLDS[current_idx + 1]
    progress = (points - min_points) / (next_points - min_points) * 100
    return LevelInfo(
        name=name,
        min_points=min_points,
        next_level=next_name,
        next_level_points=next_points,
        progress_percentage=round(progress, 1),
    )


def _advance_streak(streaks: dict, today: date) -> dict:
    """Actualiza la racha diaria: +1 si ayer hubo actividad, 1 si se cortó."""
    last_active = streaks.get("last_active")
    daily = int(streaks.get("daily", 0))

    if last_active == today.isoformat():
        return {"daily": max(daily, 1), "last_active": last_active}
    if last_active == (today - timedelta(days=1)).isoformat():
        return {"daily": daily + 1, "last_active": today.isoformat()}
    return {"daily": 1, "last_active": today.isoformat()}


# ── Persistencia ──────────────────────────────────────


async def get_or_create_profile(db: AsyncSession, user_id: UUID) -> UserGamification:
    result = await db.execute(
        select(UserGamification).where(UserGamification.user_id == user_id)
    )
    profile = result.scalar_one_or_none()
    if profile:
        return profile

    profile = UserGamification(
        user_id=user_id,
        total_points=0,
        level_name=LEVEL_THRESHOLDS[0][0],
        achievements=[],
        streaks={},
    )
    db.add(profile)
    await db.flush()
    return profile


async def _count_user_logs(
    db: AsyncSession,
    user_id: UUID,
    action: ConsumptionAction | None = None,
    since: datetime | None = None,
) -> int:
    query = select(func.count()).select_from(ConsumptionLog).where(
        ConsumptionLog.user_id == user_id
    )
    if action:
        query = query.where(ConsumptionLog.action_type == action)
    if since:
        query = query.where(ConsumptionLog.created_at >= since)
    result = await db.execute(query)
    return result.scalar() or 0


async def _evaluate_achievements(
    db: AsyncSession, profile: UserGamification, today: date
) -> list[str]:
    """Devuelve los IDs de conquistas recién alcanzadas."""
    unlocked = {a["id"] for a in profile.achievements}
    earned: list[str] = []

    if "first_registration" not in unlocked:
        if await _count_user_logs(db, profile.user_id, ConsumptionAction.REGISTER) >= 1:
            earned.append("first_registration")

    if "accuracy_master" not in unlocked:
        consumptions = await _count_user_logs(db, profile.user_id, ConsumptionAction.CONSUME)
        if consumptions >= ACCURACY_MASTER_CONSUMPTIONS:
            earned.append("accuracy_master")

    if "speed_demon" not in unlocked:
        day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
        if await _count_user_logs(db, profile.user_id, since=day_start) >= SPEED_DEMON_DAILY_LOGS:
            earned.append("speed_demon")

    if "streak_champion" not in unlocked:
        if int(profile.streaks.get("daily", 0)) >= STREAK_CHAMPION_DAYS:
            earned.append("streak_champion")

    return earned


async def award_points(
    db: AsyncSession,
    user_id: UUID | None,
    action: ConsumptionAction,
    is_critical: bool = False,
    today: date | None = None,
) -> tuple[int, list[str]]:
    """
    Otorga los puntos de un movimiento y evalúa conquistas.

    Debe llamarse después de hacer flush del log del movimiento, para que
    los conteos lo incluyan. Retorna (puntos del movimiento, conquistas
    desbloqueadas).
    """
    if user_id is None:
        return 0, []

    today = today or datetime.now(timezone.utc).date()
    points = points_for(action, is_critical)

    profile = await get_or_create_profile(db, user_id)
    profile.streaks = _advance_streak(dict(profile.streaks or {}), today)

    earned = await _evaluate_achievements(db, profile, today)
    bonus = sum(ACHIEVEMENTS[a]["points"] for a in earned)
    if earned:
        now_iso = datetime.now(timezone.utc).isoformat()
        # Reasignar la lista para que el cambio en JSON se detecte
        profile.achievements = [
            *profile.achievements,
            *({"id": a, "unlocked_at": now_iso} for a in earned),
        ]
        logger.info("Usuario %s desbloqueó conquistas: %s", user_id, ", ".join(earned))

    profile.total_points += points + bonus
    new_level = level_for(profile.total_points)
    if new_level != profile.level_name:
        logger.info("Usuario %s sube a nivel %s", user_id, new_level)
        profile.level_name = new_level

    await db.flush()
    return points, earned


# ── Consultas ─────────────────────────────────────────


def _achievements_for(profile: UserGamification) -> list[AchievementResponse]:
    unlocked = {a["id"]: a.get("unlocked_at") for a in profile.achievements}
    return [
        AchievementResponse(
            id=achievement_id,
            name=meta["name"],
            description=meta["description"],
            points=meta["points"],
            unlocked=achievement_id in unlocked,
            unlocked_at=unlocked.get(achievement_id),
        )
        for achievement_id, meta in ACHIEVEMENTS.items()
    ]


async def get_profile(db: AsyncSession, user_id: UUID) -> GamificationProfile:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundException("Usuario")

    profile = await get_or_create_profile(db, user_id)
    return GamificationProfile(
        user_id=user_id,
        full_name=user.full_name,
        total_points=profile.total_points,
        level=level_info(profile.total_points),
        daily_streak=int(profile.streaks.get("daily", 0)),
        achievements=_achievements_for(profile),
    )


async def get_ranking(db: AsyncSession, limit: int = 10) -> list[RankingEntry]:
    """Ranking de usuarios activos por puntos totales."""
    result = await db.execute(
        select(UserGamification, User)
        .join(User, User.id == UserGamification.user_id)
        .where(User.is_active.is_(True))
        .order_by(UserGamification.total_points.desc(), User.full_name.asc())
        .limit(limit)
    )
    rows = result.all()

    return [
        RankingEntry(
            position=idx,
            user_id=p.user_id,
            full_name=u.full_name,
            initials=u.initials,
            total_points=p.total_points,
            level_name=p.level_name,
            achievements_count=len(p.achievements),
        )
        for idx, (p, u) in enumerate(rows, start=1)
    ]


def list_achievements() -> list[AchievementResponse]:
    """Catálogo completo de conquistas."""
    return [
        AchievementResponse(id=a_id, name=m["name"], description=m["description"], points=m["points"])
        for a_id, m in ACHIEVEMENTS.items()
    ]
