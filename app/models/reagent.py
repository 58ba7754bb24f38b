"""
Modelos de catálogo — Fabricantes, Reactivos y Tipos de examen.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONType


class UnitMeasure(str, enum.Enum):
    """Unidad de medida del reactivo."""
    ML = "ml"
    LITER = "L"
    MG = "mg"
    GRAM = "g"
    KG = "kg"
    UNITS = "unidades"


# ── Manufacturer ──────────────────────────────────────


class Manufacturer(Base):
    __tablename__ = "manufacturers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    contact_info: Mapped[dict | None] = mapped_column(JSONType)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<Manufacturer {self.name}>"


# ── Reagent ───────────────────────────────────────────


class Reagent(Base):
    __tablename__ = "reagents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str | None] = mapped_column(
        String(100), comment="Clasificación libre: enzimático, control, etc."
    )
    unit_measure: Mapped[UnitMeasure] = mapped_column(
        Enum(UnitMeasure, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=UnitMeasure.ML
    )
    minimum_stock: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=0,
        comment="Stock mínimo por lote para alerta"
    )
    storage_conditions: Mapped[str | None] = mapped_column(String(300))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Reagent {self.name} ({self.unit_measure.value})>"


# ── ExamType ──────────────────────────────────────────


class ExamType(Base):
    __tablename__ = "exam_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    required_reagents: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list,
        comment='Lista de {"reagent_id": str, "quantity": number}'
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<ExamType {self.name}>"
