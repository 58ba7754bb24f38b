"""
Schemas para los logs de consumo (ledger de movimientos).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from app.models.reagent_lot import ConsumptionAction


class ConsumptionLogResponse(BaseModel):
    id: UUID
    reagent_lot_id: UUID
    lot_number: str | None = None
    reagent_name: str | None = None
    unit_name: str | None = None
    user_id: UUID | None = None
    user_name: str | None = None
    appointment_id: UUID | None = None
    action_type: ConsumptionAction
    quantity_changed: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    delta: Decimal
    notes: str | None = None
    points_awarded: int
    created_at: datetime


class ConsumptionLogListResponse(BaseModel):
    items: list[ConsumptionLogResponse]
    total: int
    page: int
    size: int
    pages: int


# ── Audit log administrativo ─────────────────────────


class AuditLogResponse(BaseModel):
    id: UUID
    user_id: UUID | None = None
    user_name: str | None = None
    entity: str
    entity_id: str
    action: str
    old_data: dict | None = None
    new_data: dict | None = None
    ip_address: str | None = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int
    page: int
    size: int
    pages: int
