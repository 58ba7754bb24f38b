"""
Schemas del dashboard.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from app.schemas.log import ConsumptionLogResponse


class DashboardStats(BaseModel):
    active_lots: int
    low_stock_lots: int
    expiring_soon_lots: int
    consumptions_today: int


class UnitStock(BaseModel):
    unit_id: UUID
    unit_name: str
    lots: int
    total_quantity: Decimal
    available_quantity: Decimal
    reserved_quantity: Decimal
    availability_percentage: float


class DashboardResponse(BaseModel):
    stats: DashboardStats
    stock_by_unit: list[UnitStock]
    recent_activity: list[ConsumptionLogResponse]
