"""
Modelos SQLAlchemy — exportar todos para que Alembic los detecte.
"""

from app.models.unit import Unit
from app.models.user import User, UserRole
from app.models.audit_log import AuditLog
from app.models.reagent import ExamType, Manufacturer, Reagent, UnitMeasure
from app.models.reagent_lot import (
    AuditHash,
    ConsumptionAction,
    ConsumptionLog,
    CriticalityLevel,
    DisposalCertificate,
    LotStatus,
    QrPrintRecord,
    ReagentLot,
)
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    ReagentReservation,
    ReservationStatus,
)
from app.models.gamification import UserGamification

__all__ = [
    "Unit",
    "User",
    "UserRole",
    "AuditLog",
    "ExamType",
    "Manufacturer",
    "Reagent",
    "UnitMeasure",
    "AuditHash",
    "ConsumptionAction",
    "ConsumptionLog",
    "CriticalityLevel",
    "DisposalCertificate",
    "LotStatus",
    "QrPrintRecord",
    "ReagentLot",
    "Appointment",
    "AppointmentStatus",
    "ReagentReservation",
    "ReservationStatus",
    "UserGamification",
]
