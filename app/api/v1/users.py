"""
Endpoints de gestión de usuarios del laboratorio.
Solo administradores.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_role
from app.core.security import get_client_ip
from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services import user_service

router = APIRouter()


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    size: int
    pages: int


class ActiveToggle(BaseModel):
    is_active: bool


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, description="Buscar por nombre o email"),
    role: UserRole | None = Query(None, description="Filtrar por rol"),
    unit_id: UUID | None = Query(None, description="Filtrar por unidad"),
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Lista usuarios con filtros por nombre, rol y unidad."""
    return await user_service.list_users(
        db, page=page, size=size, search=search, role=role, unit_id=unit_id
    )


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    data: UserCreate,
    request: Request,
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Crea un nuevo usuario."""
    return await user_service.create_user(db, data, user, ip_address=get_client_ip(request))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    request: Request,
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Actualiza nombre, rol, unidad o estado de un usuario."""
    return await user_service.update_user(
        db, user_id, data, user, ip_address=get_client_ip(request)
    )


@router.patch("/{user_id}/active", response_model=UserResponse)
async def toggle_user_active(
    user_id: UUID,
    data: ActiveToggle,
    request: Request,
    user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Activa o desactiva un usuario. No se puede desactivar la propia cuenta."""
    return await user_service.set_active(
        db, user_id, data.is_active, user, ip_address=get_client_ip(request)
    )
