"""
Servicio de agendamientos de exámenes.

Al crear un agendamiento se reservan los reactivos que exige su tipo de
examen; al completarlo o cancelarlo se liberan las reservas que sigan
activas.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException, ValidationException
from app.models.appointment import (
    VALID_TRANSITIONS,
    Appointment,
    AppointmentStatus,
    ReagentReservation,
    is_valid_transition,
)
from app.models.reagent import ExamType
from app.models.unit import Unit
from app.models.user import User
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    ReagentShortage,
    ReservationResponse,
)
from app.services import reservation_service
from app.services.audit_service import log_action

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────


def _reservation_to_response(r: ReagentReservation) -> ReservationResponse:
    lot = r.lot
    return ReservationResponse(
        id=r.id,
        reagent_lot_id=r.reagent_lot_id,
        lot_number=lot.lot_number if lot else None,
        reagent_id=lot.reagent_id if lot else None,
        reagent_name=lot.reagent.name if lot and lot.reagent else None,
        appointment_id=r.appointment_id,
        quantity_reserved=r.quantity_reserved,
        status=r.status,
        expires_at=r.expires_at,
        created_at=r.created_at,
    )


def _appointment_to_response(
    appt: Appointment, shortages: list[ReagentShortage] | None = None
) -> AppointmentResponse:
    return AppointmentResponse(
        id=appt.id,
        exam_type_id=appt.exam_type_id,
        exam_type_name=appt.exam_type.name if appt.exam_type else None,
        unit_id=appt.unit_id,
        unit_name=appt.unit.name if appt.unit else None,
        patient_name=appt.patient_name,
        scheduled_date=appt.scheduled_date,
        status=appt.status,
        notes=appt.notes,
        created_by=appt.created_by,
        created_by_name=appt.creator.full_name if appt.creator else None,
        completed_by=appt.completed_by,
        reservations=[_reservation_to_response(r) for r in appt.reservations],
        shortages=shortages or [],
        created_at=appt.created_at,
        updated_at=appt.updated_at,
    )


async def _get_or_404(db: AsyncSession, appointment_id: UUID) -> Appointment:
    result = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise NotFoundException("Agendamiento")
    return appointment


# ── CRUD ──────────────────────────────────────────────


async def create_appointment(
    db: AsyncSession,
    data: AppointmentCreate,
    user: User,
    ip_address: str | None = None,
) -> AppointmentResponse:
    """
    Crea el agendamiento y reserva los reactivos requeridos (FEFO).
    Si algún reactivo no tiene stock suficiente, se informa en `shortages`.
    """
    exam_type = await db.get(ExamType, data.exam_type_id)
    if not exam_type or not exam_type.is_active:
        raise NotFoundException("Tipo de examen")

    unit = await db.get(Unit, data.unit_id)
    if not unit or not unit.is_active:
        raise NotFoundException("Unidad")

    appointment = Appointment(
        exam_type_id=data.exam_type_id,
        unit_id=data.unit_id,
        created_by=user.id,
        patient_name=data.patient_name,
        scheduled_date=data.scheduled_date,
        status=AppointmentStatus.SCHEDULED,
        notes=data.notes,
    )
    db.add(appointment)
    await db.flush()

    reservations, shortages = await reservation_service.reserve_for_appointment(
        db, appointment, exam_type, user.id
    )

    await log_action(
        db,
        user_id=user.id,
        entity="appointment",
        entity_id=str(appointment.id),
        action="create",
        new_data={
            "exam_type": exam_type.name,
            "patient_name": data.patient_name,
            "scheduled_date": data.scheduled_date,
            "reservations": len(reservations),
            "shortages": len(shortages),
        },
        ip_address=ip_address,
    )

    if shortages:
        logger.warning(
            "Agendamiento %s creado con %d reactivo(s) sin stock suficiente",
            appointment.id, len(shortages),
        )

    await db.refresh(appointment)
    return _appointment_to_response(appointment, shortages)


async def get_appointment(db: AsyncSession, appointment_id: UUID) -> AppointmentResponse:
    return _appointment_to_response(await _get_or_404(db, appointment_id))


async def list_appointments(
    db: AsyncSession,
    *,
    page: int = 1,
    size: int = 20,
    search: str | None = None,
    status: AppointmentStatus | None = None,
    unit_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> AppointmentListResponse:
    """Lista agendamientos con búsqueda por paciente o tipo de examen."""
    query = select(Appointment).join(ExamType, ExamType.id == Appointment.exam_type_id)

    if search:
        query = query.where(
            or_(
                Appointment.patient_name.ilike(f"%{search}%"),
                ExamType.name.ilike(f"%{search}%"),
            )
        )
    if status:
        query = query.where(Appointment.status == status)
    if unit_id:
        query = query.where(Appointment.unit_id == unit_id)
    if date_from:
        query = query.where(Appointment.scheduled_date >= date_from)
    if date_to:
        query = query.where(Appointment.scheduled_date <= date_to)

    count_query = select(func.count()).select_from(
        query.with_only_columns(Appointment.id).subquery()
    )
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Appointment.scheduled_date.asc())
    query = query.offset((page - 1) * size).limit(size)
    result = await db.execute(query)
    appointments = result.scalars().all()

    pages = (total + size - 1) // size if total > 0 else 1

    return AppointmentListResponse(
        items=[_appointment_to_response(a) for a in appointments],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


async def change_status(
    db: AsyncSession,
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    user: User,
    ip_address: str | None = None,
) -> AppointmentResponse:
    """
    Cambia el estado usando la state machine. Completar o cancelar
    libera las reservas aún activas del agendamiento.
    """
    appointment = await _get_or_404(db, appointment_id)

    if not is_valid_transition(appointment.status, data.status):
        valid = VALID_TRANSITIONS.get(appointment.status, [])
        raise ValidationException(
            f"No se puede cambiar de '{appointment.status.value}' a '{data.status.value}'. "
            f"Transiciones válidas: {', '.join(s.value for s in valid) or 'ninguna'}"
        )

    old_status = appointment.status.value
    appointment.status = data.status
    if data.notes:
        appointment.notes = data.notes
    if data.status == AppointmentStatus.COMPLETED:
        appointment.completed_by = user.id

    released = 0
    if data.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
        released = await reservation_service.release_for_appointment(db, appointment.id)

    await db.flush()

    await log_action(
        db,
        user_id=user.id,
        entity="appointment",
        entity_id=str(appointment.id),
        action="status_change",
        old_data={"status": old_status},
        new_data={"status": data.status.value, "released_reservations": released},
        ip_address=ip_address,
    )

    await db.refresh(appointment)
    return _appointment_to_response(appointment)
