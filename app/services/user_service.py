"""
Gestión de usuarios del laboratorio (solo administradores).
"""

import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException
from app.core.security import hash_password
from app.models.unit import Unit
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services.audit_service import log_action

logger = logging.getLogger(__name__)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        initials=user.initials,
        role=user.role,
        unit_id=user.unit_id,
        unit_name=user.unit.name if user.unit else None,
        avatar_url=user.avatar_url,
        is_active=user.is_active,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def _get_or_404(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundException("Usuario")
    return user


async def _ensure_unit(db: AsyncSession, unit_id: UUID | None) -> None:
    if unit_id and not await db.get(Unit, unit_id):
        raise NotFoundException("Unidad")


async def list_users(
    db: AsyncSession,
    page: int = 1,
    size: int = 20,
    search: str | None = None,
    role: UserRole | None = None,
    unit_id: UUID | None = None,
) -> dict:
    query = select(User)
    count_query = select(func.count()).select_from(User)

    if search:
        search_filter = or_(
            User.full_name.ilike(f"%{search}%"),
            User.email.ilike(f"%{search}%"),
        )
        query = query.where(search_filter)
        count_query = count_query.where(search_filter)
    if role:
        query = query.where(User.role == role)
        count_query = count_query.where(User.role == role)
    if unit_id:
        query = query.where(User.unit_id == unit_id)
        count_query = count_query.where(User.unit_id == unit_id)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(User.full_name.asc())
    query = query.offset((page - 1) * size).limit(size)
    result = await db.execute(query)
    users = result.scalars().all()

    pages = (total + size - 1) // size if total > 0 else 1

    return {
        "items": [user_to_response(u) for u in users],
        "total": total,
        "page": page,
        "size": size,
        "pages": pages,
    }


async def create_user(
    db: AsyncSession, data: UserCreate, admin: User, ip_address: str | None = None
) -> UserResponse:
    existing = await db.execute(select(User).where(User.email == data.email))
    if existing.scalar_one_or_none():
        raise ConflictException("Ya existe un usuario con ese email")

    await _ensure_unit(db, data.unit_id)

    new_user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        role=data.role,
        full_name=data.full_name,
        unit_id=data.unit_id,
        avatar_url=data.avatar_url,
    )
    db.add(new_user)
    await db.flush()
    await db.refresh(new_user)

    await log_action(
        db,
        user_id=admin.id,
        entity="user",
        entity_id=str(new_user.id),
        action="create",
        new_data={"email": new_user.email, "role": new_user.role.value},
        ip_address=ip_address,
    )
    logger.info("Usuario creado: %s (%s) por %s", new_user.email, new_user.role.value, admin.email)
    return user_to_response(new_user)


async def update_user(
    db: AsyncSession, user_id: UUID, data: UserUpdate, admin: User, ip_address: str | None = None
) -> UserResponse:
    target = await _get_or_404(db, user_id)

    update_data = data.model_dump(exclude_unset=True)
    if "unit_id" in update_data:
        await _ensure_unit(db, update_data["unit_id"])

    # No permitir desactivarse a sí mismo
    if target.id == admin.id and update_data.get("is_active") is False:
        raise ConflictException("No puedes desactivar tu propia cuenta")

    old_data = {"full_name": target.full_name, "role": target.role.value, "is_active": target.is_active}
    for field, value in update_data.items():
        setattr(target, field, value)

    await db.flush()
    await db.refresh(target)

    await log_action(
        db,
        user_id=admin.id,
        entity="user",
        entity_id=str(target.id),
        action="update",
        old_data=old_data,
        new_data=data.model_dump(mode="json", exclude_unset=True),
        ip_address=ip_address,
    )
    return user_to_response(target)


async def set_active(
    db: AsyncSession, user_id: UUID, is_active: bool, admin: User, ip_address: str | None = None
) -> UserResponse:
    target = await _get_or_404(db, user_id)

    if target.id == admin.id and not is_active:
        raise ConflictException("No puedes desactivar tu propia cuenta")

    target.is_active = is_active
    await db.flush()
    await db.refresh(target)

    await log_action(
        db,
        user_id=admin.id,
        entity="user",
        entity_id=str(target.id),
        action="activate" if is_active else "deactivate",
        ip_address=ip_address,
    )
    return user_to_response(target)
