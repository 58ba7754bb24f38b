"""
Modelo Appointment — Exámenes agendados con reserva de reactivos.

Estados válidos y transiciones:
    scheduled → in_progress → completed
    scheduled → completed
    scheduled → cancelled
    in_progress → cancelled
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class AppointmentStatus(str, enum.Enum):
    """Estados de un agendamiento de examen."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# ── Transiciones válidas de la state machine ─────────
VALID_TRANSITIONS: dict[AppointmentStatus, list[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: [
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ],
    AppointmentStatus.IN_PROGRESS: [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ],
    # Estados terminales: no tienen transiciones
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
}


def is_valid_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    """Verifica si una transición de estado es válida."""
    return new in VALID_TRANSITIONS.get(current, [])


class ReservationStatus(str, enum.Enum):
    """Estado de una reserva de reactivo."""
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    RELEASED = "released"
    EXPIRED = "expired"


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    exam_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("exam_types.id"), nullable=False
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("units.id"), nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    completed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    # ── Datos del agendamiento ───────────────────────
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    scheduled_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Timestamps ───────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relaciones ───────────────────────────────────
    exam_type: Mapped["ExamType"] = relationship("ExamType", lazy="selectin")  # noqa: F821
    unit: Mapped["Unit"] = relationship("Unit", lazy="selectin")  # noqa: F821
    creator: Mapped["User | None"] = relationship(  # noqa: F821
        "User", foreign_keys=[created_by], lazy="selectin"
    )
    reservations: Mapped[list["ReagentReservation"]] = relationship(
        "ReagentReservation", back_populates="appointment", lazy="selectin"
    )

    # ── Índices para consultas frecuentes ────────────
    __table_args__ = (
        Index("idx_appointment_unit_date", "unit_id", "scheduled_date"),
        Index("idx_appointment_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id} [{self.status.value}] {self.scheduled_date}>"


class ReagentReservation(Base):
    __tablename__ = "reagent_reservations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagent_lots.id"), nullable=False
    )
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("appointments.id")
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    quantity_reserved: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=ReservationStatus.ACTIVE,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    appointment: Mapped["Appointment | None"] = relationship(
        "Appointment", back_populates="reservations"
    )
    lot: Mapped["ReagentLot"] = relationship("ReagentLot", lazy="selectin")  # noqa: F821

    __table_args__ = (
        Index("idx_reservation_lot_status", "reagent_lot_id", "status"),
        Index("idx_reservation_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<ReagentReservation {self.quantity_reserved} [{self.status.value}]>"
