"""
Tokens JWT firmados con RS256.

El access token lleva el rol y la unidad del usuario (`unit_id`), que es lo
que acota qué lotes ve y mueve un técnico o gerente. El refresh token solo
identifica al usuario: al refrescar se vuelve a leer la unidad desde la DB,
así un cambio de unidad se aplica en el siguiente refresh.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from app.config import get_settings

settings = get_settings()


class TokenType:
    ACCESS = "access"
    REFRESH = "refresh"


def _encode(payload: dict) -> str:
    return jwt.encode(payload, settings.jwt_private_key, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: UUID, role: str, unit_id: UUID | None = None) -> str:
    """Access token con rol y unidad. `unit_id` es None para admin y auditor sin unidad."""
    now = datetime.now(timezone.utc)
    return _encode({
        "sub": str(user_id),
        "role": role,
        "unit_id": str(unit_id) if unit_id else None,
        "type": TokenType.ACCESS,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
    })


def create_refresh_token(user_id: UUID) -> str:
    now = datetime.now(timezone.utc)
    return _encode({
        "sub": str(user_id),
        "type": TokenType.REFRESH,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS),
    })


def decode_token(token: str) -> dict:
    """Lanza jwt.InvalidTokenError si la firma no cuadra o el token expiró."""
    return jwt.decode(token, settings.jwt_public_key, algorithms=[settings.JWT_ALGORITHM])
