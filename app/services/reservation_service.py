"""
Reservas de reactivos contra lotes.

Una reserva activa retiene `quantity_reserved` en `reagent_lots.reserved_quantity`.
Toda salida de estado activo (cumplida, liberada, expirada) devuelve esa
cantidad al disponible del lote en la misma transacción.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.appointment import Appointment, ReagentReservation, ReservationStatus
from app.models.reagent import ExamType, Reagent
from app.models.reagent_lot import LotStatus, ReagentLot
from app.schemas.appointment import ReagentShortage

logger = logging.getLogger(__name__)

settings = get_settings()


async def _lock_lot(db: AsyncSession, lot_id: UUID) -> ReagentLot:
    result = await db.execute(
        select(ReagentLot)
        .where(ReagentLot.id == lot_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def find_lot_for_requirement(
    db: AsyncSession,
    reagent_id: UUID,
    unit_id: UUID,
    quantity: Decimal,
    today=None,
) -> ReagentLot | None:
    """
    Lote activo del reactivo en la unidad, no vencido, con el vencimiento
    más próximo cuyo disponible cubra `quantity` (FEFO).
    """
    today = today or datetime.now(timezone.utc).date()
    result = await db.execute(
        select(ReagentLot)
        .where(
            ReagentLot.reagent_id == reagent_id,
            ReagentLot.unit_id == unit_id,
            ReagentLot.status == LotStatus.ACTIVE,
            ReagentLot.expiry_date >= today,
            ReagentLot.current_quantity - ReagentLot.reserved_quantity >= quantity,
        )
        .order_by(ReagentLot.expiry_date.asc(), ReagentLot.created_at.asc())
        .limit(1)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _best_available(db: AsyncSession, reagent_id: UUID, unit_id: UUID) -> Decimal:
    result = await db.execute(
        select(ReagentLot).where(
            ReagentLot.reagent_id == reagent_id,
            ReagentLot.unit_id == unit_id,
            ReagentLot.status == LotStatus.ACTIVE,
        )
    )
    lots = result.scalars().all()
    return max((lot.available_quantity for lot in lots), default=Decimal("0"))


async def reserve_for_appointment(
    db: AsyncSession,
    appointment: Appointment,
    exam_type: ExamType,
    user_id: UUID | None,
    now: datetime | None = None,
) -> tuple[list[ReagentReservation], list[ReagentShortage]]:
    """
    Crea una reserva por cada reactivo requerido por el tipo de examen.
    Los reactivos sin lote suficiente se devuelven como faltantes; el
    agendamiento se mantiene igualmente.
    """
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=settings.RESERVATION_TTL_HOURS)

    reservations: list[ReagentReservation] = []
    shortages: list[ReagentShortage] = []

    for requirement in exam_type.required_reagents or []:
        reagent_id = UUID(str(requirement["reagent_id"]))
        quantity = Decimal(str(requirement["quantity"]))

        lot = await find_lot_for_requirement(
            db, reagent_id, appointment.unit_id, quantity, today=now.date()
        )
        if lot is None:
            reagent = await db.get(Reagent, reagent_id)
            best = await _best_available(db, reagent_id, appointment.unit_id)
            logger.warning(
                "Reactivo insuficiente para agendamiento %s: reagent_id=%s requerido=%s disponible=%s",
                appointment.id, reagent_id, quantity, best,
            )
            shortages.append(
                ReagentShortage(
                    reagent_id=reagent_id,
                    reagent_name=reagent.name if reagent else None,
                    required_quantity=quantity,
                    best_available=best,
                )
            )
            continue

        lot.reserved_quantity += quantity
        reservation = ReagentReservation(
            reagent_lot_id=lot.id,
            appointment_id=appointment.id,
            created_by=user_id,
            quantity_reserved=quantity,
            status=ReservationStatus.ACTIVE,
            expires_at=expires_at,
        )
        db.add(reservation)
        reservations.append(reservation)

    await db.flush()
    for reservation in reservations:
        await db.refresh(reservation)
    return reservations, shortages


async def _active_reservations(
    db: AsyncSession,
    *,
    appointment_id: UUID | None = None,
    lot_id: UUID | None = None,
) -> list[ReagentReservation]:
    query = select(ReagentReservation).where(
        ReagentReservation.status == ReservationStatus.ACTIVE
    )
    if appointment_id:
        query = query.where(ReagentReservation.appointment_id == appointment_id)
    if lot_id:
        query = query.where(ReagentReservation.reagent_lot_id == lot_id)
    result = await db.execute(query)
    return list(result.scalars().all())


def _close(
    lot: ReagentLot, reservation: ReagentReservation, new_status: ReservationStatus
) -> None:
    # Nunca dejar reserved_quantity negativo
    lot.reserved_quantity = max(
        lot.reserved_quantity - reservation.quantity_reserved, Decimal("0")
    )
    reservation.status = new_status


async def reserved_for_appointment(
    db: AsyncSession, lot_id: UUID, appointment_id: UUID
) -> Decimal:
    """Cantidad retenida en el lote por las reservas activas del agendamiento."""
    reservations = await _active_reservations(
        db, appointment_id=appointment_id, lot_id=lot_id
    )
    return sum((r.quantity_reserved for r in reservations), Decimal("0"))


async def fulfil_for_consumption(
    db: AsyncSession, lot: ReagentLot, appointment_id: UUID
) -> Decimal:
    """Marca como cumplidas las reservas del agendamiento sobre el lote."""
    reservations = await _active_reservations(
        db, appointment_id=appointment_id, lot_id=lot.id
    )
    released = Decimal("0")
    for reservation in reservations:
        released += reservation.quantity_reserved
        _close(lot, reservation, ReservationStatus.FULFILLED)
    return released


async def release_for_appointment(db: AsyncSession, appointment_id: UUID) -> int:
    """Libera las reservas activas de un agendamiento (cancelado o completado)."""
    reservations = await _active_reservations(db, appointment_id=appointment_id)
    for reservation in reservations:
        lot = await _lock_lot(db, reservation.reagent_lot_id)
        _close(lot, reservation, ReservationStatus.RELEASED)
    await db.flush()
    return len(reservations)


async def release_for_lot(db: AsyncSession, lot: ReagentLot) -> int:
    """Libera todas las reservas activas de un lote (ej. antes de descartarlo)."""
    reservations = await _active_reservations(db, lot_id=lot.id)
    for reservation in reservations:
        _close(lot, reservation, ReservationStatus.RELEASED)
    return len(reservations)


async def release_expired_reservations(
    db: AsyncSession, now: datetime | None = None
) -> int:
    """Expira las reservas activas cuyo `expires_at` ya pasó."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(ReagentReservation).where(
            ReagentReservation.status == ReservationStatus.ACTIVE,
            ReagentReservation.expires_at < now,
        )
    )
    reservations = result.scalars().all()

    for reservation in reservations:
        lot = await _lock_lot(db, reservation.reagent_lot_id)
        _close(lot, reservation, ReservationStatus.EXPIRED)

    await db.flush()
    if reservations:
        logger.info("Reservas expiradas liberadas: %d", len(reservations))
    return len(reservations)
