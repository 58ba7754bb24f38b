"""
Endpoints de agendamientos de exámenes con reserva de reactivos.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.core.security import get_client_ip
from app.database import get_db
from app.models.appointment import AppointmentStatus
from app.models.user import User
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
)
from app.services import appointment_service

router = APIRouter()


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    request: Request,
    user: User = Depends(require_permission("appointment", "create")),
    db: AsyncSession = Depends(get_db),
):
    """
    Agenda un examen y reserva sus reactivos.
    Los reactivos sin stock suficiente se informan en `shortages`.
    """
    return await appointment_service.create_appointment(
        db, data, user, ip_address=get_client_ip(request)
    )


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, description="Paciente o tipo de examen"),
    status: AppointmentStatus | None = Query(None),
    unit_id: UUID | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user: User = Depends(require_permission("appointment", "read")),
    db: AsyncSession = Depends(get_db),
):
    return await appointment_service.list_appointments(
        db,
        page=page,
        size=size,
        search=search,
        status=status,
        unit_id=unit_id,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: UUID,
    user: User = Depends(require_permission("appointment", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Detalle del agendamiento con sus reservas."""
    return await appointment_service.get_appointment(db, appointment_id)


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def change_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    request: Request,
    user: User = Depends(require_permission("appointment", "update")),
    db: AsyncSession = Depends(get_db),
):
    """Cambia el estado; completar o cancelar libera las reservas activas."""
    return await appointment_service.change_status(
        db, appointment_id, data, user, ip_address=get_client_ip(request)
    )
