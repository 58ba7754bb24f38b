"""
Indicadores del dashboard: totales, stock por unidad y actividad reciente.
"""

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.reagent_lot import ConsumptionAction, ConsumptionLog, LotStatus, ReagentLot
from app.models.unit import Unit
from app.schemas.dashboard import DashboardResponse, DashboardStats, UnitStock
from app.schemas.reagent_lot import StockStatus
from app.services import log_service
from app.services.lot_service import compute_stock_status

settings = get_settings()


async def get_dashboard(db: AsyncSession, recent_limit: int = 10) -> DashboardResponse:
    now = datetime.now(timezone.utc)
    today = now.date()
    warning_limit = today + timedelta(days=settings.EXPIRY_WARNING_DAYS)

    result = await db.execute(
        select(ReagentLot).where(ReagentLot.status == LotStatus.ACTIVE)
    )
    active_lots = result.scalars().all()

    low_stock = sum(
        1 for lot in active_lots
        if compute_stock_status(lot, today) in (StockStatus.LOW, StockStatus.CRITICAL)
    )
    expiring_soon = sum(1 for lot in active_lots if today <= lot.expiry_date <= warning_limit)

    day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
    consumptions = await db.execute(
        select(func.count()).select_from(ConsumptionLog).where(
            ConsumptionLog.action_type == ConsumptionAction.CONSUME,
            ConsumptionLog.created_at >= day_start,
        )
    )

    # ── Stock por unidad ─────────────────────────────
    units_result = await db.execute(
        select(Unit).where(Unit.is_active.is_(True)).order_by(Unit.name.asc())
    )
    stock_by_unit: list[UnitStock] = []
    for unit in units_result.scalars().all():
        lots = [lot for lot in active_lots if lot.unit_id == unit.id]
        total = sum((lot.current_quantity for lot in lots), Decimal("0"))
        reserved = sum((lot.reserved_quantity for lot in lots), Decimal("0"))
        available = total - reserved
        percentage = float(available / total * 100) if total > 0 else 0.0
        stock_by_unit.append(
            UnitStock(
                unit_id=unit.id,
                unit_name=unit.name,
                lots=len(lots),
                total_quantity=total,
                available_quantity=available,
                reserved_quantity=reserved,
                availability_percentage=round(percentage, 1),
            )
        )

    return DashboardResponse(
        stats=DashboardStats(
            active_lots=len(active_lots),
            low_stock_lots=low_stock,
            expiring_soon_lots=expiring_soon,
            consumptions_today=consumptions.scalar() or 0,
        ),
        stock_by_unit=stock_by_unit,
        recent_activity=await log_service.get_recent_activity(db, recent_limit),
    )
