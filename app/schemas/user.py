"""
Schemas para User.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import UserRole


class UserBase(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=200)
    role: UserRole = UserRole.TECHNICIAN
    unit_id: UUID | None = None
    avatar_url: str | None = Field(None, max_length=500)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)


class UserUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=2, max_length=200)
    role: UserRole | None = None
    unit_id: UUID | None = None
    avatar_url: str | None = Field(None, max_length=500)
    is_active: bool | None = None

    @field_validator("full_name", "role", "is_active")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("El campo no puede ser nulo")
        return v


class UserResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    initials: str
    role: UserRole
    unit_id: UUID | None = None
    unit_name: str | None = None
    avatar_url: str | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime


class UserMe(BaseModel):
    """Respuesta para el endpoint /me con datos de la unidad."""
    id: UUID
    email: str
    full_name: str
    initials: str
    role: UserRole
    unit_id: UUID | None = None
    unit_name: str | None = None
    avatar_url: str | None = None
