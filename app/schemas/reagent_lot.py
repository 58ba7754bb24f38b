"""
Schemas Pydantic para lotes de reactivos.
Registro, consumo, transferencia, descarte, ajuste e inventario.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.reagent_lot import CriticalityLevel, LotStatus
from app.schemas.log import ConsumptionLogResponse


class StockStatus(str, enum.Enum):
    """Estado de stock derivado (no se persiste)."""
    NORMAL = "normal"
    LOW = "low"
    CRITICAL = "critical"
    EXPIRED = "expired"
    DISPOSED = "disposed"


# ── Registro ──────────────────────────────────────────


class LotRegister(BaseModel):
    reagent_id: UUID
    manufacturer_id: UUID | None = None
    unit_id: UUID
    lot_number: str = Field(..., min_length=1, max_length=100)
    initial_quantity: Decimal = Field(..., max_digits=12, decimal_places=2, description="Debe ser mayor a cero")
    expiry_date: date
    location: str | None = Field(None, max_length=300)
    minimum_stock: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    criticality_level: CriticalityLevel = CriticalityLevel.MEDIUM
    storage_conditions: dict | None = None
    notes: str | None = None

    @field_validator("lot_number")
    @classmethod
    def strip_lot_number(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("El número de lote no puede estar vacío")
        return v


class LotUpdate(BaseModel):
    """Campos descriptivos; las cantidades solo cambian por movimientos."""
    manufacturer_id: UUID | None = None
    minimum_stock: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    criticality_level: CriticalityLevel | None = None
    storage_conditions: dict | None = None
    notes: str | None = None

    @field_validator("criticality_level")
    @classmethod
    def criticality_not_null(cls, v: CriticalityLevel | None) -> CriticalityLevel:
        if v is None:
            raise ValueError("El nivel de criticidad no puede ser nulo")
        return v


# ── Movimientos ───────────────────────────────────────


class LotConsume(BaseModel):
    quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    appointment_id: UUID | None = None
    notes: str | None = None


class LotTransfer(BaseModel):
    destination: str = Field(..., min_length=1, max_length=300)
    quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    reason: str = Field(..., min_length=1, max_length=500)


class LotAdjust(BaseModel):
    counted_quantity: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Cantidad física contada")
    reason: str = Field(..., min_length=1, max_length=500)


class LotDiscard(BaseModel):
    reason: str = Field(..., min_length=1)
    checklist: list[int] = Field(default_factory=list, description="IDs marcados")
    photos: list[str] = Field(default_factory=list, description="Data URLs base64")
    notes: str | None = None


class DisposalChecklistItem(BaseModel):
    id: int
    label: str
    required: bool


# ── Respuestas ────────────────────────────────────────


class LotResponse(BaseModel):
    id: UUID
    reagent_id: UUID
    reagent_name: str | None = None
    unit_measure: str | None = None
    manufacturer_id: UUID | None = None
    manufacturer_name: str | None = None
    unit_id: UUID
    unit_name: str | None = None
    lot_number: str
    location: str | None = None
    expiry_date: date
    initial_quantity: Decimal
    current_quantity: Decimal
    reserved_quantity: Decimal
    available_quantity: Decimal
    minimum_stock: Decimal
    criticality_level: CriticalityLevel
    status: LotStatus
    stock_status: StockStatus
    days_to_expiry: int
    storage_conditions: dict | None = None
    qr_code_data: dict | None = None
    audit_hash: str | None = None
    notes: str | None = None
    registered_by: UUID | None = None
    version: int
    created_at: datetime
    updated_at: datetime


class LotListResponse(BaseModel):
    items: list[LotResponse]
    total: int
    page: int
    size: int
    pages: int


class LotDetailResponse(LotResponse):
    history: list[ConsumptionLogResponse] = Field(default_factory=list)


class LotMovementResponse(BaseModel):
    """Resultado de un movimiento: lote actualizado + log + puntos."""
    lot: LotResponse
    log: ConsumptionLogResponse
    points_awarded: int = 0
    achievements_unlocked: list[str] = Field(default_factory=list)
    audit_hash: str | None = None


class DisposalCertificateResponse(BaseModel):
    id: UUID
    reagent_lot_id: UUID
    code: str
    reason: str
    notes: str | None = None
    quantity: Decimal
    checklist: list[int]
    photos_count: int
    disposed_by: UUID | None = None
    disposed_by_name: str | None = None
    created_at: datetime


class DiscardResponse(LotMovementResponse):
    certificate: DisposalCertificateResponse


# ── Inventario ────────────────────────────────────────


class InventorySummary(BaseModel):
    total_lots: int
    active_lots: int
    expired_lots: int
    disposed_lots: int
    low_stock_lots: int
    critical_stock_lots: int
    expiring_soon_lots: int


# ── QR ────────────────────────────────────────────────


class QrPrintRecordResponse(BaseModel):
    id: UUID
    reagent_lot_id: UUID
    printed_by: UUID | None = None
    print_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ScanRequest(BaseModel):
    payload: str = Field(..., min_length=1, description="Texto crudo leído del QR")


class ScanResponse(BaseModel):
    lot: LotResponse
    expired: bool
    expiring_soon: bool
    payload_mismatch: bool
