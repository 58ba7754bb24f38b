"""
Schemas de autenticación.

El par de tokens que se devuelve en login y refresh es el mismo; el access
token va acotado a la unidad del usuario (ver `app.auth.jwt`).
"""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.user import UserRole


# ── Login ────────────────────────────────────────────
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class UserLoginData(BaseModel):
    """Lo mínimo que el front necesita para filtrar por unidad sin pedir /me."""
    id: UUID
    email: str
    full_name: str
    role: UserRole
    unit_id: UUID | None = None
    unit_name: str | None = None


class LoginResponse(BaseModel):
    user: UserLoginData
    tokens: TokenResponse


class RefreshRequest(BaseModel):
    refresh_token: str


# ── Cambio de contraseña ────────────────────────────
class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., min_length=8, max_length=128)


class ChangePasswordResponse(BaseModel):
    message: str = "Contraseña actualizada correctamente"
