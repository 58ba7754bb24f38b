"""
Endpoint del escáner QR.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.reagent_lot import ScanRequest, ScanResponse
from app.services import qr_service

router = APIRouter()


@router.post("/scan", response_model=ScanResponse)
async def scan(
    data: ScanRequest,
    user: User = Depends(require_permission("lot", "read")),
    db: AsyncSession = Depends(get_db),
):
    """
    Recibe el texto crudo del QR y devuelve el estado actual del lote
    con las banderas de vencimiento y de payload inconsistente.
    """
    return await qr_service.scan(db, data.payload)
