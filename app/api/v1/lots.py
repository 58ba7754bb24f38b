"""
Endpoints REST de lotes de reactivos.
Registro, inventario, movimientos (consumo, transferencia, ajuste,
descarte) y etiquetas QR.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.core.security import get_client_ip
from app.database import get_db
from app.models.reagent_lot import LotStatus
from app.models.user import User
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
    QrPrintRecordResponse,
    StockStatus,
)
from app.services import lot_service, qr_service

router = APIRouter()


def _request_meta(request: Request) -> dict:
    """IP y user-agent para el log de consumo."""
    return {"ip_address": get_client_ip(request), "user_agent": request.headers.get("User-Agent")}


# ── Registro e inventario ─────────────────────────────


@router.post("", response_model=LotMovementResponse, status_code=201)
async def register_lot(
    data: LotRegister,
    request: Request,
    user: User = Depends(require_permission("lot", "register")),
    db: AsyncSession = Depends(get_db),
):
    """Registra un nuevo lote y genera su payload QR."""
    return await lot_service.register_lot(db, data, user.id, **_request_meta(request))


@router.get("", response_model=LotListResponse)
async def list_lots(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    unit_id: UUID | None = Query(None),
    reagent_id: UUID | None = Query(None),
    status: LotStatus | None = Query(None),
    stock_status: StockStatus | None = Query(None),
    search: str | None = Query(None, description="Reactivo, número de lote o ubicación"),
    expiring_within_days: int | None = Query(None, ge=0),
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Inventario de lotes con filtros."""
    return await lot_service.list_lots(
        db,
        page=page,
        size=size,
        unit_id=unit_id,
        reagent_id=reagent_id,
        status=status,
        stock_status=stock_status,
        search=search,
        expiring_within_days=expiring_within_days,
    )


@router.get("/summary", response_model=InventorySummary)
async def inventory_summary(
    unit_id: UUID | None = Query(None),
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Resumen del inventario (por unidad si se indica)."""
    return await lot_service.get_inventory_summary(db, unit_id=unit_id)


@router.get("/disposal-checklist", response_model=list[DisposalChecklistItem])
async def disposal_checklist(
    user: User = Depends(require_permission("lot", "read")),
):
    """Ítems del checklist de descarte; los `required` son obligatorios."""
    return lot_service.DISPOSAL_CHECKLIST


@router.get("/{lot_id}", response_model=LotDetailResponse)
async def get_lot(
    lot_id: UUID,
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    """Detalle del lote con su historial de movimientos."""
    return await lot_service.get_lot(db, lot_id)


@router.put("/{lot_id}", response_model=LotResponse)
async def update_lot(
    lot_id: UUID,
    data: LotUpdate,
    user: User = Depends(require_permission("lot", "adjust")),
    db: AsyncSession = Depends(get_db),
):
    """Actualiza datos descriptivos del lote (no cantidades)."""
    return await lot_service.update_lot(db, lot_id, data)


# ── Movimientos ───────────────────────────────────────


@router.post("/{lot_id}/consume", response_model=LotMovementResponse)
async def consume(
    lot_id: UUID,
    data: LotConsume,
    request: Request,
    user: User = Depends(require_permission("lot", "consume")),
    db: AsyncSession = Depends(get_db),
):
    """Registra un consumo del lote."""
    return await lot_service.consume(db, lot_id, data, user.id, **_request_meta(request))


@router.post("/{lot_id}/transfer", response_model=LotMovementResponse)
async def transfer(
    lot_id: UUID,
    data: LotTransfer,
    request: Request,
    user: User = Depends(require_permission("lot", "transfer")),
    db: AsyncSession = Depends(get_db),
):
    """Transfiere el lote a otra ubicación descontando la cantidad indicada."""
    return await lot_service.transfer(db, lot_id, data, user.id, **_request_meta(request))


@router.post("/{lot_id}/adjust", response_model=LotMovementResponse)
async def adjust(
    lot_id: UUID,
    data: LotAdjust,
    request: Request,
    user: User = Depends(require_permission("lot", "adjust")),
    db: AsyncSession = Depends(get_db),
):
    """Ajuste por conteo físico."""
    return await lot_service.adjust(db, lot_id, data, user.id, **_request_meta(request))


@router.post("/{lot_id}/discard", response_model=DiscardResponse)
async def discard(
    lot_id: UUID,
    data: LotDiscard,
    request: Request,
    user: User = Depends(require_permission("lot", "dispose")),
    db: AsyncSession = Depends(get_db),
):
    """Descarta el lote con checklist y fotos; genera el certificado."""
    return await lot_service.discard(db, lot_id, data, user.id, **_request_meta(request))


@router.get("/{lot_id}/certificate", response_model=DisposalCertificateResponse)
async def get_certificate(
    lot_id: UUID,
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    return await lot_service.get_certificate(db, lot_id)


# ── QR ────────────────────────────────────────────────


@router.get("/{lot_id}/qr", response_class=Response)
async def get_qr(
    lot_id: UUID,
    reason: str | None = Query(None, max_length=300, description="Motivo de la impresión"),
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    """PNG del QR del lote. Cada descarga queda en el historial de impresión."""
    lot, png = await qr_service.print_label(db, lot_id, user.id, reason)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="qr-{lot.lot_number}.png"'},
    )


@router.get("/{lot_id}/qr/history", response_model=list[QrPrintRecordResponse])
async def qr_history(
    lot_id: UUID,
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    return await qr_service.list_print_history(db, lot_id)
