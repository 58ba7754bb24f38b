"""
Schemas para agendamientos de exámenes y reservas de reactivos.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.appointment import AppointmentStatus, ReservationStatus


class AppointmentCreate(BaseModel):
    exam_type_id: UUID
    unit_id: UUID
    patient_name: str = Field(..., min_length=2, max_length=200)
    scheduled_date: datetime
    notes: str | None = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: str | None = None


class ReservationResponse(BaseModel):
    id: UUID
    reagent_lot_id: UUID
    lot_number: str | None = None
    reagent_id: UUID | None = None
    reagent_name: str | None = None
    appointment_id: UUID | None = None
    quantity_reserved: Decimal
    status: ReservationStatus
    expires_at: datetime
    created_at: datetime


class ReagentShortage(BaseModel):
    """Reactivo requerido sin lote que cubra la cantidad."""
    reagent_id: UUID
    reagent_name: str | None = None
    required_quantity: Decimal
    best_available: Decimal = Decimal("0")


class AppointmentResponse(BaseModel):
    id: UUID
    exam_type_id: UUID
    exam_type_name: str | None = None
    unit_id: UUID
    unit_name: str | None = None
    patient_name: str
    scheduled_date: datetime
    status: AppointmentStatus
    notes: str | None = None
    created_by: UUID | None = None
    created_by_name: str | None = None
    completed_by: UUID | None = None
    reservations: list[ReservationResponse] = Field(default_factory=list)
    shortages: list[ReagentShortage] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    size: int
    pages: int
