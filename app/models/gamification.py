"""
Modelo UserGamification — puntos, nivel y conquistas por usuario.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType


class UserGamification(Base):
    __tablename__ = "user_gamification"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=False
    )
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level_name: Mapped[str] = mapped_column(String(50), nullable=False, default="Iniciante")
    achievements: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list,
        comment='Lista de {"id": str, "unlocked_at": iso}'
    )
    streaks: Mapped[dict] = mapped_column(
        JSONType, nullable=False, default=dict,
        comment='{"daily": int, "last_active": "YYYY-MM-DD"}'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")  # noqa: F821

    def __repr__(self) -> str:
        return f"<UserGamification {self.user_id} {self.total_points}pts>"
