"""
Schemas Pydantic para el catálogo.
Unidades, fabricantes, reactivos y tipos de examen.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.models.reagent import UnitMeasure


# ── Unit Schemas ──────────────────────────────────────


class UnitCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    location: str | None = Field(None, max_length=300)
    contact_info: dict | None = None


class UnitUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    location: str | None = Field(None, max_length=300)
    contact_info: dict | None = None
    is_active: bool | None = None

    @field_validator("name", "is_active")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("El campo no puede ser nulo")
        return v


class UnitResponse(BaseModel):
    id: UUID
    name: str
    location: str | None = None
    contact_info: dict | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UnitListResponse(BaseModel):
    items: list[UnitResponse]
    total: int
    page: int
    size: int
    pages: int


# ── Manufacturer Schemas ──────────────────────────────


class ManufacturerCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=300)
    contact_info: dict | None = None


class ManufacturerUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=300)
    contact_info: dict | None = None
    is_active: bool | None = None

    @field_validator("name", "is_active")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("El campo no puede ser nulo")
        return v


class ManufacturerResponse(BaseModel):
    id: UUID
    name: str
    contact_info: dict | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ManufacturerListResponse(BaseModel):
    items: list[ManufacturerResponse]
    total: int
    page: int
    size: int
    pages: int


# ── Reagent Schemas ───────────────────────────────────


class ReagentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=300)
    description: str | None = None
    type: str | None = Field(None, max_length=100, description="Clasificación libre")
    unit_measure: UnitMeasure = UnitMeasure.ML
    minimum_stock: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    storage_conditions: str | None = Field(None, max_length=300)


class ReagentUpdate(BaseModel):
    """Nombre y unidad de medida son inmutables una vez existan lotes."""
    name: str | None = Field(None, min_length=2, max_length=300)
    description: str | None = None
    type: str | None = Field(None, max_length=100)
    unit_measure: UnitMeasure | None = None
    minimum_stock: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    storage_conditions: str | None = Field(None, max_length=300)
    is_active: bool | None = None

    @field_validator("name", "unit_measure", "minimum_stock", "is_active")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("El campo no puede ser nulo")
        return v


class ReagentResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    type: str | None = None
    unit_measure: UnitMeasure
    minimum_stock: Decimal
    storage_conditions: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReagentListResponse(BaseModel):
    items: list[ReagentResponse]
    total: int
    page: int
    size: int
    pages: int


# ── ExamType Schemas ──────────────────────────────────


class RequiredReagent(BaseModel):
    reagent_id: UUID
    quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class ExamTypeCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    description: str | None = None
    required_reagents: list[RequiredReagent] = Field(default_factory=list)


class ExamTypeUpdate(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    description: str | None = None
    required_reagents: list[RequiredReagent] | None = None
    is_active: bool | None = None

    @field_validator("name", "required_reagents", "is_active")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("El campo no puede ser nulo")
        return v


class ExamTypeResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    required_reagents: list[RequiredReagent]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ExamTypeListResponse(BaseModel):
    items: list[ExamTypeResponse]
    total: int
    page: int
    size: int
    pages: int
