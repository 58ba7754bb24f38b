"""
Endpoints de logs: movimientos del ledger (con export CSV) y audit log
administrativo.
"""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.database import get_db
from app.models.reagent_lot import ConsumptionAction
from app.models.user import User
from app.schemas.log import AuditLogListResponse, ConsumptionLogListResponse
from app.services import audit_service, log_service

router = APIRouter()


@router.get("", response_model=ConsumptionLogListResponse)
async def list_logs(
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
    search: str | None = Query(None, description="Reactivo, lote, usuario u observaciones"),
    user_id: UUID | None = Query(None),
    action: ConsumptionAction | None = Query(None),
    unit_id: UUID | None = Query(None),
    lot_id: UUID | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user: User = Depends(require_permission("log", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Lista paginada de movimientos con filtros."""
    return await log_service.list_logs(
        db,
        page=page,
        size=size,
        search=search,
        user_id=user_id,
        action=action,
        unit_id=unit_id,
        lot_id=lot_id,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/export", response_class=Response)
async def export_logs(
    search: str | None = Query(None),
    user_id: UUID | None = Query(None),
    action: ConsumptionAction | None = Query(None),
    unit_id: UUID | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user: User = Depends(require_permission("log", "export")),
    db: AsyncSession = Depends(get_db),
):
    """Exporta los movimientos filtrados como CSV."""
    content = await log_service.export_logs_csv(
        db,
        search=search,
        user_id=user_id,
        action=action,
        unit_id=unit_id,
        date_from=date_from,
        date_to=date_to,
    )
    filename = f"logs-reagentes-{datetime.now(timezone.utc):%Y-%m-%d}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/audit", response_model=AuditLogListResponse)
async def list_audit_logs(
    page: int = Query(1, ge=1),
    size: int = Query(15, ge=1, le=100),
    action: str | None = Query(None),
    entity: str | None = Query(None),
    user_id: UUID | None = Query(None),
    search: str | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    user: User = Depends(require_permission("audit_log", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Audit log administrativo (usuarios, logins, catálogo)."""
    return await audit_service.get_audit_logs(
        db,
        page=page,
        size=size,
        action=action,
        entity=entity,
        user_id=user_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
