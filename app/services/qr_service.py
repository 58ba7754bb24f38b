"""
Etiquetas QR de lotes y lectura desde el escáner.

El payload es JSON sin firma; al escanear se carga el estado vivo del
lote por `id` y se marca si el número de lote impreso no coincide.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from io import BytesIO
from uuid import UUID

import qrcode
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import NotFoundException, ValidationException
from app.models.reagent_lot import LotStatus, QrPrintRecord, ReagentLot
from app.schemas.reagent_lot import QrPrintRecordResponse, ScanResponse
from app.services.lot_service import build_qr_payload, lot_to_response

logger = logging.getLogger(__name__)

settings = get_settings()


def render_qr_png(payload: dict) -> bytes:
    """Genera la imagen PNG del QR para el payload dado."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(json.dumps(payload, ensure_ascii=False))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


async def print_label(
    db: AsyncSession,
    lot_id: UUID,
    user_id: UUID | None,
    reason: str | None = None,
) -> tuple[ReagentLot, bytes]:
    """Renderiza el QR del lote y registra la impresión en el historial."""
    result = await db.execute(select(ReagentLot).where(ReagentLot.id == lot_id))
    lot = result.scalar_one_or_none()
    if not lot:
        raise NotFoundException("Lote")

    payload = lot.qr_code_data or build_qr_payload(lot)
    png = render_qr_png(payload)

    db.add(QrPrintRecord(reagent_lot_id=lot.id, printed_by=user_id, print_reason=reason))
    await db.flush()
    return lot, png


async def list_print_history(
    db: AsyncSession, lot_id: UUID
) -> list[QrPrintRecordResponse]:
    result = await db.execute(
        select(QrPrintRecord)
        .where(QrPrintRecord.reagent_lot_id == lot_id)
        .order_by(QrPrintRecord.created_at.desc())
    )
    return [QrPrintRecordResponse.model_validate(r) for r in result.scalars().all()]


def parse_payload(raw: str) -> dict:
    """Decodifica el texto del QR. Lanza 422 si no es un payload de lote."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationException("Código QR inválido: no es JSON")

    if not isinstance(data, dict) or "id" not in data:
        raise ValidationException("Código QR inválido: falta el identificador del lote")

    try:
        UUID(str(data["id"]))
    except ValueError:
        raise ValidationException("Código QR inválido: identificador de lote mal formado")
    return data


async def scan(db: AsyncSession, raw: str) -> ScanResponse:
    data = parse_payload(raw)
    lot_id = UUID(str(data["id"]))

    result = await db.execute(select(ReagentLot).where(ReagentLot.id == lot_id))
    lot = result.scalar_one_or_none()
    if not lot:
        raise NotFoundException("Lote")

    today = datetime.now(timezone.utc).date()
    expired = lot.status == LotStatus.EXPIRED or lot.expiry_date < today
    expiring_soon = (
        not expired
        and lot.expiry_date <= today + timedelta(days=settings.EXPIRY_WARNING_DAYS)
    )
    payload_mismatch = data.get("lot") is not None and data.get("lot") != lot.lot_number
    if payload_mismatch:
        logger.warning(
            "QR con número de lote distinto al registrado: lote=%s impreso=%s",
            lot.lot_number, data.get("lot"),
        )

    return ScanResponse(
        lot=lot_to_response(lot, today),
        expired=expired,
        expiring_soon=expiring_soon,
        payload_mismatch=payload_mismatch,
    )
