"""
Consulta y exportación de los logs de consumo.
Los logs solo se escriben desde el ledger (`lot_service`); aquí se leen.
"""

import csv
import io
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reagent import Reagent
from app.models.reagent_lot import ConsumptionAction, ConsumptionLog, ReagentLot
from app.models.unit import Unit
from app.models.user import User
from app.schemas.log import ConsumptionLogListResponse, ConsumptionLogResponse

CSV_HEADER = [
    "Data/Hora",
    "Reagente",
    "Lote",
    "Ação",
    "Usuário",
    "Unidade",
    "Qtd. Anterior",
    "Qtd. Posterior",
    "Diferença",
    "Observações",
]

ACTION_LABELS: dict[ConsumptionAction, str] = {
    ConsumptionAction.CONSUME: "Consumo",
    ConsumptionAction.REGISTER: "Cadastro",
    ConsumptionAction.TRANSFER: "Transferência",
    ConsumptionAction.DISPOSE: "Descarte",
    ConsumptionAction.ADJUST: "Ajuste",
}


def log_to_response(log: ConsumptionLog) -> ConsumptionLogResponse:
    lot = log.lot
    return ConsumptionLogResponse(
        id=log.id,
        reagent_lot_id=log.reagent_lot_id,
        lot_number=lot.lot_number if lot else None,
        reagent_name=lot.reagent.name if lot and lot.reagent else None,
        unit_name=lot.unit.name if lot and lot.unit else None,
        user_id=log.user_id,
        user_name=log.user.full_name if log.user else None,
        appointment_id=log.appointment_id,
        action_type=log.action_type,
        quantity_changed=log.quantity_changed,
        quantity_before=log.quantity_before,
        quantity_after=log.quantity_after,
        delta=log.delta,
        notes=log.notes,
        points_awarded=log.points_awarded,
        created_at=log.created_at,
    )


def _apply_filters(
    query,
    *,
    search: str | None = None,
    user_id: UUID | None = None,
    action: ConsumptionAction | None = None,
    unit_id: UUID | None = None,
    lot_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
):
    query = (
        query.join(ReagentLot, ReagentLot.id == ConsumptionLog.reagent_lot_id)
        .join(Reagent, Reagent.id == ReagentLot.reagent_id)
        .outerjoin(User, User.id == ConsumptionLog.user_id)
    )
    if search:
        query = query.where(
            or_(
                Reagent.name.ilike(f"%{search}%"),
                ReagentLot.lot_number.ilike(f"%{search}%"),
                User.full_name.ilike(f"%{search}%"),
                ConsumptionLog.notes.ilike(f"%{search}%"),
            )
        )
    if user_id:
        query = query.where(ConsumptionLog.user_id == user_id)
    if action:
        query = query.where(ConsumptionLog.action_type == action)
    if unit_id:
        query = query.where(ReagentLot.unit_id == unit_id)
    if lot_id:
        query = query.where(ConsumptionLog.reagent_lot_id == lot_id)
    if date_from:
        query = query.where(ConsumptionLog.created_at >= date_from)
    if date_to:
        query = query.where(ConsumptionLog.created_at <= date_to)
    return query


async def list_logs(
    db: AsyncSession,
    page: int = 1,
    size: int = 50,
    **filters,
) -> ConsumptionLogListResponse:
    query = _apply_filters(select(ConsumptionLog), **filters)
    count_query = _apply_filters(
        select(func.count(ConsumptionLog.id)).select_from(ConsumptionLog), **filters
    )

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(ConsumptionLog.created_at.desc(), ConsumptionLog.id)
    query = query.offset((page - 1) * size).limit(size)
    result = await db.execute(query)
    logs = result.scalars().all()

    pages = (total + size - 1) // size if total > 0 else 1

    return ConsumptionLogListResponse(
        items=[log_to_response(log) for log in logs],
        total=total,
        page=page,
        size=size,
        pages=pages,
    )


async def get_lot_history(
    db: AsyncSession, lot_id: UUID, limit: int = 100
) -> list[ConsumptionLogResponse]:
    result = await db.execute(
        select(ConsumptionLog)
        .where(ConsumptionLog.reagent_lot_id == lot_id)
        .order_by(ConsumptionLog.created_at.desc(), ConsumptionLog.id)
        .limit(limit)
    )
    return [log_to_response(log) for log in result.scalars().all()]


async def get_recent_activity(
    db: AsyncSession, limit: int = 10
) -> list[ConsumptionLogResponse]:
    result = await db.execute(
        select(ConsumptionLog).order_by(ConsumptionLog.created_at.desc()).limit(limit)
    )
    return [log_to_response(log) for log in result.scalars().all()]


async def export_logs_csv(db: AsyncSession, **filters) -> str:
    """
    Exporta los logs filtrados a CSV (todos, sin paginar).
    El módulo `csv` se encarga del quoting de comas, comillas y saltos de línea.
    """
    query = _apply_filters(select(ConsumptionLog), **filters)
    query = query.order_by(ConsumptionLog.created_at.desc(), ConsumptionLog.id)
    result = await db.execute(query)
    logs = result.scalars().all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for log in logs:
        lot = log.lot
        writer.writerow([
            log.created_at.strftime("%d/%m/%Y %H:%M:%S") if log.created_at else "",
            lot.reagent.name if lot.reagent else "",
            lot.lot_number,
            ACTION_LABELS.get(log.action_type, log.action_type.value),
            log.user.full_name if log.user else "",
            lot.unit.name if lot.unit else "",
            log.quantity_before,
            log.quantity_after,
            log.delta,
            log.notes or "",
        ])
    return buffer.getvalue()
