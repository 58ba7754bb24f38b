"""
Modelos del ledger de reactivos — Lotes, Logs de consumo, Hashes de auditoría.

Cada cambio de cantidad en un lote queda registrado en `consumption_logs`
(append-only) con cantidades antes/después. Los lotes críticos generan
además un registro en `audit_hashes` con el SHA-256 del payload.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, JSONType


# ── Enums ─────────────────────────────────────────────


class LotStatus(str, enum.Enum):
    """Estado del lote. `disposed` es terminal."""
    ACTIVE = "active"
    EXPIRED = "expired"
    DISPOSED = "disposed"


class CriticalityLevel(str, enum.Enum):
    """Nivel de criticidad; `critical` activa el hash de auditoría."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ConsumptionAction(str, enum.Enum):
    """Tipo de movimiento registrado en el log de consumo."""
    CONSUME = "consume"
    REGISTER = "register"
    TRANSFER = "transfer"
    DISPOSE = "dispose"
    ADJUST = "adjust"


# ── ReagentLot ────────────────────────────────────────


class ReagentLot(Base):
    __tablename__ = "reagent_lots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagents.id"), nullable=False
    )
    manufacturer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("manufacturers.id")
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("units.id"), nullable=False
    )
    registered_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    lot_number: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str | None] = mapped_column(
        String(300), comment="Ej: Geladeira A2, Prateleira 3"
    )
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)

    initial_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    current_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reserved_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=0,
        comment="Cantidad retenida por reservas activas"
    )
    minimum_stock: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), comment="Si es NULL se usa el mínimo del reactivo"
    )

    criticality_level: Mapped[CriticalityLevel] = mapped_column(
        Enum(CriticalityLevel, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=CriticalityLevel.MEDIUM
    )
    status: Mapped[LotStatus] = mapped_column(
        Enum(LotStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=LotStatus.ACTIVE
    )

    storage_conditions: Mapped[dict | None] = mapped_column(JSONType)
    qr_code_data: Mapped[dict | None] = mapped_column(
        JSONType, comment="Payload JSON impreso en la etiqueta QR"
    )
    audit_hash: Mapped[str | None] = mapped_column(
        String(64), comment="Último data_hash registrado para lotes críticos"
    )
    notes: Mapped[str | None] = mapped_column(Text)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relaciones
    reagent: Mapped["Reagent"] = relationship("Reagent", lazy="selectin")  # noqa: F821
    manufacturer: Mapped["Manufacturer | None"] = relationship(  # noqa: F821
        "Manufacturer", lazy="selectin"
    )
    unit: Mapped["Unit"] = relationship("Unit", lazy="selectin")  # noqa: F821

    __table_args__ = (
        UniqueConstraint("reagent_id", "lot_number", name="uq_lot_reagent_number"),
        CheckConstraint("current_quantity >= 0", name="ck_lot_current_non_negative"),
        CheckConstraint(
            "reserved_quantity >= 0 AND reserved_quantity <= current_quantity",
            name="ck_lot_reserved_bounds",
        ),
        Index("idx_lot_unit_status", "unit_id", "status"),
        Index("idx_lot_expiry", "expiry_date"),
    )

    # Bloqueo optimista: UPDATE ... WHERE version = :old
    __mapper_args__ = {"version_id_col": version}

    @property
    def available_quantity(self) -> Decimal:
        return self.current_quantity - self.reserved_quantity

    @property
    def is_critical(self) -> bool:
        return self.criticality_level == CriticalityLevel.CRITICAL

    def __repr__(self) -> str:
        return (
            f"<ReagentLot {self.lot_number} current={self.current_quantity} "
            f"reserved={self.reserved_quantity} [{self.status.value}]>"
        )


# ── ConsumptionLog ────────────────────────────────────


class ConsumptionLog(Base):
    """Registro inmutable de un cambio de cantidad. INSERT-only."""

    __tablename__ = "consumption_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagent_lots.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("appointments.id")
    )
    action_type: Mapped[ConsumptionAction] = mapped_column(
        Enum(ConsumptionAction, values_callable=lambda e: [x.value for x in e]),
        nullable=False
    )
    quantity_changed: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="Siempre positiva"
    )
    quantity_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Metadata de la request ───────────────────────
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relaciones
    lot: Mapped["ReagentLot"] = relationship("ReagentLot", lazy="selectin")
    user: Mapped["User | None"] = relationship("User", lazy="selectin")  # noqa: F821

    __table_args__ = (
        Index("idx_log_lot", "reagent_lot_id"),
        Index("idx_log_created", "created_at"),
        Index("idx_log_user_action", "user_id", "action_type"),
    )

    @property
    def delta(self) -> Decimal:
        """Variación firmada de current_quantity."""
        return self.quantity_after - self.quantity_before

    def __repr__(self) -> str:
        return f"<ConsumptionLog {self.action_type.value} {self.quantity_changed}>"


# ── AuditHash ─────────────────────────────────────────


class AuditHash(Base):
    """Registro tipo "blockchain" para lotes críticos: hash del payload JSON."""

    __tablename__ = "audit_hashes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagent_lots.id"), nullable=False, index=True
    )
    transaction_type: Mapped[ConsumptionAction] = mapped_column(
        Enum(ConsumptionAction, values_callable=lambda e: [x.value for x in e]),
        nullable=False
    )
    transaction_hash: Mapped[str] = mapped_column(
        String(120), unique=True, nullable=False,
        comment="<TIPO>_<epoch ms>_<lot id>"
    )
    data_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="SHA-256 hex del payload canónico"
    )
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="confirmed")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditHash {self.transaction_hash}>"


# ── QrPrintRecord ─────────────────────────────────────


class QrPrintRecord(Base):
    __tablename__ = "qr_print_history"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagent_lots.id"), nullable=False, index=True
    )
    printed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    print_reason: Mapped[str | None] = mapped_column(String(300))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ── DisposalCertificate ───────────────────────────────


class DisposalCertificate(Base):
    """Comprobante digital de descarte con checklist y fotos inline."""

    __tablename__ = "disposal_certificates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    reagent_lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("reagent_lots.id"), nullable=False, unique=True
    )
    disposed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    checklist: Mapped[list] = mapped_column(
        JSONType, nullable=False, comment="IDs de ítems del checklist marcados"
    )
    photos: Mapped[list] = mapped_column(
        JSONType, nullable=False, comment="Fotos como data URLs (base64 inline)"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    lot: Mapped["ReagentLot"] = relationship("ReagentLot", lazy="selectin")
    user: Mapped["User | None"] = relationship("User", lazy="selectin")  # noqa: F821
