"""
Modelo User — Perfiles de usuarios del laboratorio con roles RBAC.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Enum, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class UserRole(str, enum.Enum):
    """Roles del sistema."""
    ADMIN = "admin"
    MANAGER = "manager"
    TECHNICIAN = "technician"
    AUDITOR = "auditor"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    unit_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("units.id"), index=True,
        comment="Unidad de laboratorio a la que pertenece"
    )

    # ── Datos de acceso ──────────────────────────────
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=UserRole.TECHNICIAN
    )

    # ── Perfil ───────────────────────────────────────
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500))

    # ── Estado ───────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(default=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relaciones ───────────────────────────────────
    unit: Mapped["Unit | None"] = relationship(  # noqa: F821
        "Unit", lazy="selectin"
    )

    @property
    def initials(self) -> str:
        return "".join(word[0] for word in self.full_name.split() if word)[:2].upper()

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
