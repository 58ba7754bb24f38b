"""
Endpoints de autenticación: login, refresh, perfil y cambio de contraseña.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.core.exceptions import ValidationException
from app.core.security import get_client_ip
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    ChangePasswordRequest,
    ChangePasswordResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenResponse,
)
from app.schemas.user import UserMe
from app.services import auth_service

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    data: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Autentica un usuario con email y contraseña."""
    return await auth_service.login(
        db, data, ip_address=get_client_ip(request)
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    data: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Refresca un par de tokens usando el refresh token."""
    return await auth_service.refresh_tokens(db, data.refresh_token)


@router.get("/me", response_model=UserMe)
async def get_me(
    user: User = Depends(get_current_user),
):
    """Retorna los datos del usuario autenticado."""
    return UserMe(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        initials=user.initials,
        role=user.role,
        unit_id=user.unit_id,
        unit_name=user.unit.name if user.unit else None,
        avatar_url=user.avatar_url,
    )


@router.put("/change-password", response_model=ChangePasswordResponse)
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cambia la contraseña del usuario autenticado."""
    if data.new_password != data.confirm_password:
        raise ValidationException("Las contraseñas no coinciden")

    await auth_service.change_password(
        db,
        user=user,
        current_password=data.current_password,
        new_password=data.new_password,
        ip_address=get_client_ip(request),
    )
    return ChangePasswordResponse()
