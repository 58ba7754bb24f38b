"""
Tareas Celery de mantenimiento del stock.
Vencimiento de lotes, expiración de reservas y alertas de stock bajo.
"""

import asyncio
import logging

from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _expire_lots() -> int:
    from app.database import async_session_factory
    from app.services.lot_service import expire_overdue_lots

    async with async_session_factory() as db:
        count = await expire_overdue_lots(db)
        await db.commit()
        return count


async def _release_reservations() -> int:
    from app.database import async_session_factory
    from app.services.reservation_service import release_expired_reservations

    async with async_session_factory() as db:
        count = await release_expired_reservations(db)
        await db.commit()
        return count


async def _low_stock_report() -> list[dict]:
    from app.database import async_session_factory
    from app.services.lot_service import compute_stock_status, get_low_stock_lots

    async with async_session_factory() as db:
        lots = await get_low_stock_lots(db)
        return [
            {
                "lot_id": str(lot.id),
                "lot_number": lot.lot_number,
                "reagent": lot.reagent.name if lot.reagent else None,
                "available": str(lot.available_quantity),
                "stock_status": compute_stock_status(lot).value,
            }
            for lot in lots
        ]


@celery_app.task(name="stock.expire_lots")
def expire_lots_task():
    """Marca como vencidos los lotes activos con fecha de vencimiento pasada."""
    count = asyncio.run(_expire_lots())
    logger.info(f"Lotes vencidos: {count}")
    return {"expired": count}


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="stock.release_expired_reservations",
)
def release_expired_reservations_task(self):
    """Libera las reservas cuyo TTL ya pasó."""
    try:
        count = asyncio.run(_release_reservations())
    except Exception as exc:
        logger.error(f"Error liberando reservas expiradas: {exc}")
        raise self.retry(exc=exc)
    return {"released": count}


@celery_app.task(name="stock.check_low_stock")
def check_low_stock_task():
    """Reporta los lotes en stock bajo o crítico."""
    items = asyncio.run(_low_stock_report())
    for item in items:
        logger.warning(
            f"Stock {item['stock_status']}: {item['reagent']} lote {item['lot_number']} "
            f"(disponible {item['available']})"
        )
    return {"count": len(items), "lots": items}
