"""
Servicio de autenticación: login, refresh y cambio de contraseña.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import (
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from app.core.exceptions import CredentialsException
from app.core.security import hash_password, verify_password
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    TokenResponse,
    UserLoginData,
)
from app.services.audit_service import log_action

logger = logging.getLogger(__name__)


def _issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id, user.role.value, user.unit_id),
        refresh_token=create_refresh_token(user.id),
    )


async def login(
    db: AsyncSession,
    data: LoginRequest,
    ip_address: str | None = None,
) -> LoginResponse:
    """Autentica un usuario con email y contraseña."""
    result = await db.execute(
        select(User).where(User.email == data.email, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()

    if not user:
        logger.warning("Login fallido: usuario no encontrado para email=%s", data.email)
        raise CredentialsException("Email o contraseña incorrectos")

    if not verify_password(data.password, user.hashed_password):
        logger.warning(
            "Login fallido: contraseña incorrecta para user_id=%s email=%s",
            user.id, user.email,
        )
        raise CredentialsException("Email o contraseña incorrectos")

    # Actualizar último login
    user.last_login = datetime.now(timezone.utc)
    await db.flush()

    await log_action(
        db,
        user_id=user.id,
        entity="user",
        entity_id=str(user.id),
        action="login",
        ip_address=ip_address,
    )

    return LoginResponse(
        user=UserLoginData(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            unit_id=user.unit_id,
            unit_name=user.unit.name if user.unit else None,
        ),
        tokens=_issue_tokens(user),
    )


async def refresh_tokens(db: AsyncSession, refresh_token_str: str) -> TokenResponse:
    """Refresca un par de tokens usando el refresh token."""
    try:
        payload = decode_token(refresh_token_str)
    except jwt.InvalidTokenError:
        raise CredentialsException("Refresh token inválido o expirado")

    if payload.get("type") != TokenType.REFRESH:
        raise CredentialsException("Token no es un refresh token")

    user_id = UUID(payload["sub"])

    # Verificar que el usuario sigue activo
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if not user:
        raise CredentialsException("Usuario no encontrado o inactivo")

    return _issue_tokens(user)


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
    ip_address: str | None = None,
) -> None:
    """Cambia la contraseña del usuario autenticado."""
    if not verify_password(current_password, user.hashed_password):
        raise CredentialsException("La contraseña actual es incorrecta")

    user.hashed_password = hash_password(new_password)
    await db.flush()

    await log_action(
        db,
        user_id=user.id,
        entity="user",
        entity_id=str(user.id),
        action="change_password",
        ip_address=ip_address,
    )
