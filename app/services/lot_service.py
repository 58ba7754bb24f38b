"""
Ledger de lotes de reactivos.

Todas las operaciones que cambian cantidades (registro, consumo,
transferencia, descarte y ajuste) siguen el mismo patrón:

    1. Leer el lote con SELECT ... FOR UPDATE (+ version_id_col)
    2. Validar contra la cantidad disponible (current - reserved)
    3. Escribir el log de consumo con cantidades antes/después
    4. Actualizar el lote, reservas, puntos y hash de auditoría

Todo ocurre en la sesión de la request, por lo que se confirma o se
revierte junto.
"""

import hashlib
import json
import logging
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import (
    ConflictException,
    InsufficientStockException,
    NotFoundException,
    ValidationException,
)
from app.models.appointment import Appointment, AppointmentStatus
from app.models.reagent import Manufacturer, Reagent
from app.models.reagent_lot import (
    AuditHash,
    ConsumptionAction,
    ConsumptionLog,
    DisposalCertificate,
    LotStatus,
    ReagentLot,
)
from app.models.unit import Unit
from app.schemas.reagent_lot import (
    DiscardResponse,
    DisposalCertificateResponse,
    DisposalChecklistItem,
    InventorySummary,
    LotAdjust,
    LotConsume,
    LotDetailResponse,
    LotDiscard,
    LotListResponse,
    LotMovementResponse,
    LotRegister,
    LotResponse,
    LotTransfer,
    LotUpdate,
    StockStatus,
)
from app.services import gamification_service, log_service, reservation_service

logger = logging.getLogger(__name__)

settings = get_settings()

DISPOSAL_CHECKLIST: list[DisposalChecklistItem] = [
    DisposalChecklistItem(id=1, label="Verificar se o reagente está realmente vencido ou inutilizável", required=True),
    DisposalChecklistItem(id=2, label="Confirmar que não há utilização pendente ou reservas ativas", required=True),
    DisposalChecklistItem(id=3, label="Verificar se o recipiente está adequadamente identificado", required=True),
    DisposalChecklistItem(id=4, label="Confirmar que as medidas de segurança foram tomadas", required=True),
    DisposalChecklistItem(id=5, label="Documentar o motivo do descarte adequadamente", required=True),
    DisposalChecklistItem(id=6, label="Foto do recipiente foi tirada antes do descarte", required=True),
    DisposalChecklistItem(id=7, label="Autorização de supervisor foi obtida (se necessário)", required=False),
]
REQUIRED_CHECKLIST_IDS = {item.id for item in DISPOSAL_CHECKLIST if item.required}


# ── Reglas derivadas ──────────────────────────────────


def _today() -> date:
    return datetime.now(timezone.utc).date()


_last_epoch_ms = 0


def _epoch_ms() -> int:
    """Epoch en ms, estrictamente creciente dentro del proceso."""
    global _last_epoch_ms
    _last_epoch_ms = max(time.time_ns() // 1_000_000, _last_epoch_ms + 1)
    return _last_epoch_ms


def effective_minimum(lot: ReagentLot) -> Decimal:
    """Mínimo propio del lote o, si no tiene, el del reactivo."""
    if lot.minimum_stock is not None:
        return lot.minimum_stock
    if lot.reagent is not None:
        return lot.reagent.minimum_stock
    return Decimal("0")


def compute_stock_status(lot: ReagentLot, today: date | None = None) -> StockStatus:
    """
    disposed → descartado, sin stock que vigilar
    expired  → vencido por fecha o por estado
    critical → disponible <= 50% del mínimo
    low      → disponible <= mínimo
    normal   → resto
    """
    if lot.status == LotStatus.DISPOSED:
        return StockStatus.DISPOSED
    today = today or _today()
    if lot.status == LotStatus.EXPIRED or lot.expiry_date < today:
        return StockStatus.EXPIRED

    minimum = effective_minimum(lot)
    available = lot.available_quantity
    if available <= minimum * Decimal("0.5"):
        return StockStatus.CRITICAL
    if available <= minimum:
        return StockStatus.LOW
    return StockStatus.NORMAL


def build_qr_payload(lot: ReagentLot) -> dict:
    """Payload JSON que se codifica en la etiqueta QR del lote."""
    return {
        "id": str(lot.id),
        "name": lot.reagent.name if lot.reagent else None,
        "lot": lot.lot_number,
        "manufacturer": lot.manufacturer.name if lot.manufacturer else None,
        "expiryDate": lot.expiry_date.isoformat(),
        "quantity": str(lot.initial_quantity),
        "unit": lot.reagent.unit_measure.value if lot.reagent else None,
        "location": lot.location,
        "registeredAt": datetime.now(timezone.utc).isoformat(),
    }


def canonical_hash(payload: dict) -> str:
    """SHA-256 hex del JSON canónico (claves ordenadas, sin espacios)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def lot_to_response(lot: ReagentLot, today: date | None = None) -> LotResponse:
    today = today or _today()
    return LotResponse(
        id=lot.id,
        reagent_id=lot.reagent_id,
        reagent_name=lot.reagent.name if lot.reagent else None,
        unit_measure=lot.reagent.unit_measure.value if lot.reagent else None,
        manufacturer_id=lot.manufacturer_id,
        manufacturer_name=lot.manufacturer.name if lot.manufacturer else None,
        unit_id=lot.unit_id,
        unit_name=lot.unit.name if lot.unit else None,
        lot_number=lot.lot_number,
        location=lot.location,
        expiry_date=lot.expiry_date,
        initial_quantity=lot.initial_quantity,
        current_quantity=lot.current_quantity,
        reserved_quantity=lot.reserved_quantity,
        available_quantity=lot.available_quantity,
        minimum_stock=effective_minimum(lot),
        criticality_level=lot.criticality_level,
        status=lot.status,
        stock_status=compute_stock_status(lot, today),
        days_to_expiry=(lot.expiry_date - today).days,
        storage_conditions=lot.storage_conditions,
        qr_code_data=lot.qr_code_data,
        audit_hash=lot.audit_hash,
        notes=lot.notes,
        registered_by=lot.registered_by,
        version=lot.version,
        created_at=lot.created_at,
        updated_at=lot.updated_at,
    )


def _certificate_to_response(cert: DisposalCertificate) -> DisposalCertificateResponse:
    return DisposalCertificateResponse(
        id=cert.id,
        reagent_lot_id=cert.reagent_lot_id,
        code=cert.code,
        reason=cert.reason,
        notes=cert.notes,
        quantity=cert.quantity,
        checklist=cert.checklist,
        photos_count=len(cert.photos or []),
        disposed_by=cert.disposed_by,
        disposed_by_name=cert.user.full_name if cert.user else None,
        created_at=cert.created_at,
    )


# ── Helpers de escritura ──────────────────────────────


async def _get_lot(db: AsyncSession, lot_id: UUID, for_update: bool = False) -> ReagentLot:
    query = select(ReagentLot).where(ReagentLot.id == lot_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    lot = result.scalar_one_or_none()
    if not lot:
        raise NotFoundException("Lote")
    return lot


async def _write_audit_hash(
    db: AsyncSession,
    lot: ReagentLot,
    action: ConsumptionAction,
    payload: dict,
) -> AuditHash:
    """Registro tipo blockchain para lotes críticos."""
    data_hash = canonical_hash(payload)
    entry = AuditHash(
        reagent_lot_id=lot.id,
        transaction_type=action,
        transaction_hash=f"{action.value.upper()}_{_epoch_ms()}_{lot.id}",
        data_hash=data_hash,
        payload=json.loads(json.dumps(payload, default=str)),
        status="confirmed",
    )
    db.add(entry)
    lot.audit_hash = data_hash
    return entry


async def _record_movement(
    db: AsyncSession,
    lot: ReagentLot,
    *,
    action: ConsumptionAction,
    quantity_changed: Decimal,
    quantity_before: Decimal,
    quantity_after: Decimal,
    user_id: UUID | None,
    notes: str | None = None,
    appointment_id: UUID | None = None,
    audit_payload: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[ConsumptionLog, int, list[str], str | None]:
    """
    Escribe el log del movimiento, otorga puntos y, si el lote es crítico,
    el hash de auditoría. Retorna (log, puntos, conquistas, data_hash).
    """
    log = ConsumptionLog(
        reagent_lot_id=lot.id,
        user_id=user_id,
        appointment_id=appointment_id,
        action_type=action,
        quantity_changed=quantity_changed,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        notes=notes,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(log)
    await db.flush()

    points, earned = await gamification_service.award_points(
        db, user_id, action, is_critical=lot.is_critical
    )
    log.points_awarded = points

    data_hash = None
    if lot.is_critical:
        payload = {
            "action": action.value,
            "lot_id": str(lot.id),
            "lot_number": lot.lot_number,
            "quantity_before": str(quantity_before),
            "quantity_after": str(quantity_after),
            "user_id": str(user_id) if user_id else None,
            **(audit_payload or {}),
        }
        entry = await _write_audit_hash(db, lot, action, payload)
        data_hash = entry.data_hash

    await db.flush()
    await db.refresh(log)
    await db.refresh(lot)
    return log, points, earned, data_hash


def _warn_low_stock(lot: ReagentLot) -> None:
    status = compute_stock_status(lot)
    if status in (StockStatus.LOW, StockStatus.CRITICAL):
        logger.warning(
            "Stock %s en lote %s (%s): disponible=%s mínimo=%s",
            status.value, lot.lot_number, lot.id, lot.available_quantity, effective_minimum(lot),
        )


def _movement_response(
    lot: ReagentLot, log: ConsumptionLog, points: int, earned: list[str], data_hash: str | None
) -> LotMovementResponse:
    return LotMovementResponse(
        lot=lot_to_response(lot),
        log=log_service.log_to_response(log),
        points_awarded=points,
        achievements_unlocked=earned,
        audit_hash=data_hash,
    )


def _ensure_consumable(lot: ReagentLot) -> None:
    if lot.status != LotStatus.ACTIVE:
        raise ValidationException(
            f"El lote {lot.lot_number} no está activo (estado: {lot.status.value})"
        )
    if lot.expiry_date < _today():
        raise ValidationException(f"El lote {lot.lot_number} está vencido")


# ── Registro ──────────────────────────────────────────


async def register_lot(
    db: AsyncSession,
    data: LotRegister,
    user_id: UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LotMovementResponse:
    if data.initial_quantity <= 0:
        raise ValidationException("La cantidad inicial debe ser mayor a cero")

    reagent = await db.get(Reagent, data.reagent_id)
    if not reagent or not reagent.is_active:
        raise NotFoundException("Reactivo")

    unit = await db.get(Unit, data.unit_id)
    if not unit or not unit.is_active:
        raise NotFoundException("Unidad")

    if data.manufacturer_id:
        manufacturer = await db.get(Manufacturer, data.manufacturer_id)
        if not manufacturer:
            raise NotFoundException("Fabricante")

    if data.expiry_date < _today():
        raise ValidationException("La fecha de vencimiento ya pasó")

    # Número de lote único por reactivo
    existing = await db.execute(
        select(ReagentLot.id).where(
            ReagentLot.reagent_id == data.reagent_id,
            ReagentLot.lot_number == data.lot_number,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictException(
            f"Ya existe el lote {data.lot_number} para el reactivo {reagent.name}"
        )

    lot = ReagentLot(
        reagent_id=data.reagent_id,
        manufacturer_id=data.manufacturer_id,
        unit_id=data.unit_id,
        registered_by=user_id,
        lot_number=data.lot_number,
        location=data.location,
        expiry_date=data.expiry_date,
        initial_quantity=data.initial_quantity,
        current_quantity=data.initial_quantity,
        reserved_quantity=Decimal("0"),
        minimum_stock=data.minimum_stock,
        criticality_level=data.criticality_level,
        status=LotStatus.ACTIVE,
        storage_conditions=data.storage_conditions,
        notes=data.notes,
    )
    db.add(lot)
    await db.flush()
    await db.refresh(lot)

    lot.qr_code_data = build_qr_payload(lot)

    log, points, earned, data_hash = await _record_movement(
        db,
        lot,
        action=ConsumptionAction.REGISTER,
        quantity_changed=data.initial_quantity,
        quantity_before=Decimal("0"),
        quantity_after=data.initial_quantity,
        user_id=user_id,
        notes=f"Cadastro do lote {lot.lot_number}",
        audit_payload={"expiry_date": lot.expiry_date.isoformat(), "unit_id": str(lot.unit_id)},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    logger.info("Lote registrado: %s (%s) qty=%s", lot.lot_number, lot.id, lot.initial_quantity)
    return _movement_response(lot, log, points, earned, data_hash)


async def update_lot(db: AsyncSession, lot_id: UUID, data: LotUpdate) -> LotResponse:
    lot = await _get_lot(db, lot_id, for_update=True)
    if lot.status == LotStatus.DISPOSED:
        raise ValidationException("No se puede editar un lote descartado")

    update_data = data.model_dump(exclude_unset=True)
    if "manufacturer_id" in update_data and update_data["manufacturer_id"]:
        if not await db.get(Manufacturer, update_data["manufacturer_id"]):
            raise NotFoundException("Fabricante")

    for key, value in update_data.items():
        setattr(lot, key, value)

    await db.flush()
    await db.refresh(lot)
    return lot_to_response(lot)


# ── Consumo ───────────────────────────────────────────


async def consume(
    db: AsyncSession,
    lot_id: UUID,
    data: LotConsume,
    user_id: UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LotMovementResponse:
    """
    Descuenta `quantity` del lote. Si viene `appointment_id`, la reserva de
    ese agendamiento sobre el lote cuenta como disponible y queda cumplida.
    """
    lot = await _get_lot(db, lot_id, for_update=True)
    _ensure_consumable(lot)

    own_reserved = Decimal("0")
    if data.appointment_id:
        appointment = await db.get(Appointment, data.appointment_id)
        if not appointment:
            raise NotFoundException("Agendamiento")
        if appointment.status == AppointmentStatus.CANCELLED:
            raise ValidationException("El agendamiento está cancelado")
        own_reserved = await reservation_service.reserved_for_appointment(
            db, lot.id, data.appointment_id
        )

    usable = lot.available_quantity + own_reserved
    if data.quantity > usable:
        raise InsufficientStockException(usable, data.quantity)

    if data.appointment_id and own_reserved > 0:
        await reservation_service.fulfil_for_consumption(db, lot, data.appointment_id)

    before = lot.current_quantity
    lot.current_quantity = before - data.quantity

    log, points, earned, data_hash = await _record_movement(
        db,
        lot,
        action=ConsumptionAction.CONSUME,
        quantity_changed=data.quantity,
        quantity_before=before,
        quantity_after=lot.current_quantity,
        user_id=user_id,
        notes=data.notes,
        appointment_id=data.appointment_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    _warn_low_stock(lot)
    return _movement_response(lot, log, points, earned, data_hash)


# ── Transferencia ─────────────────────────────────────


async def transfer(
    db: AsyncSession,
    lot_id: UUID,
    data: LotTransfer,
    user_id: UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LotMovementResponse:
    """
    Descuenta la cantidad transferida y mueve el lote a la ubicación
    destino. El lote no se divide en dos registros.
    """
    lot = await _get_lot(db, lot_id, for_update=True)
    _ensure_consumable(lot)

    destination = data.destination.strip()
    if lot.location and destination == lot.location:
        raise ValidationException("La ubicación destino es igual a la actual")

    if data.quantity > lot.available_quantity:
        raise InsufficientStockException(lot.available_quantity, data.quantity)

    origin = lot.location or "-"
    before = lot.current_quantity
    lot.current_quantity = before - data.quantity
    lot.location = destination

    log, points, earned, data_hash = await _record_movement(
        db,
        lot,
        action=ConsumptionAction.TRANSFER,
        quantity_changed=data.quantity,
        quantity_before=before,
        quantity_after=lot.current_quantity,
        user_id=user_id,
        notes=f"Transferência: {origin} → {destination}. Motivo: {data.reason}",
        audit_payload={"from": origin, "to": destination, "reason": data.reason},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    _warn_low_stock(lot)
    return _movement_response(lot, log, points, earned, data_hash)


# ── Ajuste ────────────────────────────────────────────


async def adjust(
    db: AsyncSession,
    lot_id: UUID,
    data: LotAdjust,
    user_id: UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LotMovementResponse:
    """Fija current_quantity al conteo físico; no puede quedar bajo lo reservado."""
    lot = await _get_lot(db, lot_id, for_update=True)
    if lot.status == LotStatus.DISPOSED:
        raise ValidationException("No se puede ajustar un lote descartado")

    if data.counted_quantity < lot.reserved_quantity:
        raise ValidationException(
            f"El conteo ({data.counted_quantity}) es menor que lo reservado ({lot.reserved_quantity})"
        )
    if data.counted_quantity == lot.current_quantity:
        raise ValidationException("El conteo coincide con la cantidad actual")

    before = lot.current_quantity
    lot.current_quantity = data.counted_quantity

    log, points, earned, data_hash = await _record_movement(
        db,
        lot,
        action=ConsumptionAction.ADJUST,
        quantity_changed=abs(data.counted_quantity - before),
        quantity_before=before,
        quantity_after=data.counted_quantity,
        user_id=user_id,
        notes=f"Ajuste: {data.reason}",
        audit_payload={"reason": data.reason},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    _warn_low_stock(lot)
    return _movement_response(lot, log, points, earned, data_hash)


# ── Descarte ──────────────────────────────────────────


def _validate_discard(data: LotDiscard) -> None:
    if not data.reason.strip():
        raise ValidationException("El motivo del descarte es obligatorio")

    missing = sorted(REQUIRED_CHECKLIST_IDS - set(data.checklist))
    if missing:
        raise ValidationException(
            f"Checklist incompleto. Ítems obligatorios pendientes: {missing}"
        )

    if not data.photos:
        raise ValidationException("Se requiere al menos una foto del recipiente")
    for photo in data.photos:
        if not photo.startswith("data:image/"):
            raise ValidationException("Las fotos deben enviarse como data URL de imagen")


async def discard(
    db: AsyncSession,
    lot_id: UUID,
    data: LotDiscard,
    user_id: UUID | None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> DiscardResponse:
    _validate_discard(data)

    lot = await _get_lot(db, lot_id, for_update=True)
    if lot.status == LotStatus.DISPOSED:
        raise ConflictException(f"El lote {lot.lot_number} ya fue descartado")

    released = await reservation_service.release_for_lot(db, lot)
    if released:
        logger.info("Descarte de lote %s liberó %d reservas", lot.id, released)

    before = lot.current_quantity
    lot.current_quantity = Decimal("0")
    lot.status = LotStatus.DISPOSED

    notes = f"Descarte: {data.reason}. Checklist completado."
    if data.notes:
        notes += f" Observações: {data.notes}"

    log, points, earned, data_hash = await _record_movement(
        db,
        lot,
        action=ConsumptionAction.DISPOSE,
        quantity_changed=before,
        quantity_before=before,
        quantity_after=Decimal("0"),
        user_id=user_id,
        notes=notes,
        audit_payload={
            "reason": data.reason,
            "checklist_completed": True,
            "photos_count": len(data.photos),
        },
        ip_address=ip_address,
        user_agent=user_agent,
    )

    certificate = DisposalCertificate(
        reagent_lot_id=lot.id,
        disposed_by=user_id,
        code=f"CERT_{_epoch_ms()}",
        reason=data.reason,
        notes=data.notes,
        quantity=before,
        checklist=sorted(set(data.checklist)),
        photos=list(data.photos),
    )
    db.add(certificate)
    await db.flush()
    await db.refresh(certificate)

    logger.info("Lote %s descartado (%s), certificado %s", lot.lot_number, lot.id, certificate.code)
    return DiscardResponse(
        lot=lot_to_response(lot),
        log=log_service.log_to_response(log),
        points_awarded=points,
        achievements_unlocked=earned,
        audit_hash=data_hash,
        certificate=_certificate_to_response(certificate),
    )


async def get_certificate(db: AsyncSession, lot_id: UUID) -> DisposalCertificateResponse:
    result = await db.execute(
        select(DisposalCertificate).where(DisposalCertificate.reagent_lot_id == lot_id)
    )
    cert = result.scalar_one_or_none()
    if not cert:
        raise NotFoundException("Certificado de descarte")
    return _certificate_to_response(cert)


# ── Consultas de inventario ───────────────────────────


async def get_lot(db: AsyncSession, lot_id: UUID) -> LotDetailResponse:
    lot = await _get_lot(db, lot_id)
    history = await log_service.get_lot_history(db, lot_id)
    return LotDetailResponse(**lot_to_response(lot).model_dump(), history=history)


async def list_lots(
    db: AsyncSession,
    page: int = 1,
    size: int = 20,
    unit_id: UUID | None = None,
    reagent_id: UUID | None = None,
    status: LotStatus | None = None,
    stock_status: StockStatus | None = None,
    search: str | None = None,
    expiring_within_days: int | None = None,
) -> LotListResponse:
    """
    Lista lotes con filtros. `stock_status` es derivado, por lo que se
    filtra en Python después de aplicar los filtros SQL.
    """
    today = _today()
    query = select(ReagentLot).join(Reagent, Reagent.id == ReagentLot.reagent_id)

    if unit_id:
        query = query.where(ReagentLot.unit_id == unit_id)
    if reagent_id:
        query = query.where(ReagentLot.reagent_id == reagent_id)
    if status:
        query = query.where(ReagentLot.status == status)
    if search:
        query = query.where(
            or_(
                Reagent.name.ilike(f"%{search}%"),
                ReagentLot.lot_number.ilike(f"%{search}%"),
                ReagentLot.location.ilike(f"%{search}%"),
            )
        )
    if expiring_within_days is not None:
        query = query.where(
            ReagentLot.expiry_date <= today + timedelta(days=expiring_within_days)
        )

    query = query.order_by(ReagentLot.expiry_date.asc(), ReagentLot.lot_number.asc())

    if stock_status:
        result = await db.execute(query)
        lots = [
            lot for lot in result.scalars().all()
            if compute_stock_status(lot, today) == stock_status
        ]
        total = len(lots)
        lots = lots[(page - 1) * size:page * size]
    else:
        count_query = select(func.count()).select_from(query.subquery())
        total_result = await db.execute(count_query)
        total = total_result.scalar() or 0

        result = await db.execute(query.offset((page - 1) * size).limit(size))
        lots = result.scalars().all()

    pages = (total + size - 1) // size if total > 0 else 1

    return LotListResponse(
        items=[lot_to_response(lot, today) for lot in lots],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


async def get_inventory_summary(
    db: AsyncSession, unit_id: UUID | None = None
) -> InventorySummary:
    today = _today()
    query = select(ReagentLot)
    if unit_id:
        query = query.where(ReagentLot.unit_id == unit_id)
    result = await db.execute(query)
    lots = result.scalars().all()

    warning_limit = today + timedelta(days=settings.EXPIRY_WARNING_DAYS)
    active = [lot for lot in lots if lot.status == LotStatus.ACTIVE]
    statuses = [compute_stock_status(lot, today) for lot in active]

    return InventorySummary(
        total_lots=len(lots),
        active_lots=len(active),
        expired_lots=sum(
            1 for lot in lots
            if lot.status == LotStatus.EXPIRED
            or (lot.status == LotStatus.ACTIVE and lot.expiry_date < today)
        ),
        disposed_lots=sum(1 for lot in lots if lot.status == LotStatus.DISPOSED),
        low_stock_lots=sum(1 for s in statuses if s == StockStatus.LOW),
        critical_stock_lots=sum(1 for s in statuses if s == StockStatus.CRITICAL),
        expiring_soon_lots=sum(
            1 for lot in active if today <= lot.expiry_date <= warning_limit
        ),
    )


async def get_low_stock_lots(db: AsyncSession) -> list[ReagentLot]:
    """Lotes activos en estado low o critical."""
    today = _today()
    result = await db.execute(
        select(ReagentLot).where(ReagentLot.status == LotStatus.ACTIVE)
    )
    return [
        lot for lot in result.scalars().all()
        if compute_stock_status(lot, today) in (StockStatus.LOW, StockStatus.CRITICAL)
    ]


# ── Mantenimiento ─────────────────────────────────────


async def expire_overdue_lots(db: AsyncSession, today: date | None = None) -> int:
    """Pasa a `expired` los lotes activos con vencimiento anterior a hoy."""
    today = today or _today()
    result = await db.execute(
        select(ReagentLot)
        .where(
            ReagentLot.status == LotStatus.ACTIVE,
            ReagentLot.expiry_date < today,
        )
        .with_for_update()
    )
    lots = result.scalars().all()
    for lot in lots:
        lot.status = LotStatus.EXPIRED
        await reservation_service.release_for_lot(db, lot)
        logger.info("Lote %s (%s) vencido el %s", lot.lot_number, lot.id, lot.expiry_date)

    await db.flush()
    return len(lots)
