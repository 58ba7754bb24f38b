"""
Audit log administrativo: logins, gestión de usuarios, catálogo y
agendamientos. Los movimientos de stock no pasan por aquí; su rastro es
`consumption_logs`.

INSERT-only, nunca se modifica ni elimina.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog
from app.models.user import User
from app.schemas.log import AuditLogListResponse, AuditLogResponse


def _json_default(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def _snapshot(data: dict | None) -> dict | None:
    """Copia JSON-serializable de un snapshot (UUID, Decimal y fechas a texto)."""
    if data is None:
        return None
    return json.loads(json.dumps(data, default=_json_default))


async def log_action(
    db: AsyncSession,
    *,
    user_id: UUID | None,
    entity: str,
    entity_id: str,
    action: str,
    old_data: dict | None = None,
    new_data: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        entity=entity,
        entity_id=str(entity_id),
        action=action,
        old_data=_snapshot(old_data),
        new_data=_snapshot(new_data),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_audit_logs(
    db: AsyncSession,
    *,
    page: int = 1,
    size: int = 15,
    action: str | None = None,
    entity: str | None = None,
    user_id: UUID | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> AuditLogListResponse:
    """Consulta paginada, más reciente primero, con el nombre del autor."""
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if entity:
        conditions.append(AuditLog.entity == entity)
    if user_id:
        conditions.append(AuditLog.user_id == user_id)
    if date_from:
        conditions.append(AuditLog.created_at >= date_from)
    if date_to:
        conditions.append(AuditLog.created_at <= date_to)
    if search:
        conditions.append(
            or_(
                AuditLog.entity.ilike(f"%{search}%"),
                AuditLog.entity_id.ilike(f"%{search}%"),
                AuditLog.action.ilike(f"%{search}%"),
                User.full_name.ilike(f"%{search}%"),
            )
        )

    base = (
        select(AuditLog, User.full_name)
        .outerjoin(User, User.id == AuditLog.user_id)
        .where(*conditions)
    )
    count_query = (
        select(func.count(AuditLog.id))
        .select_from(AuditLog)
        .outerjoin(User, User.id == AuditLog.user_id)
        .where(*conditions)
    )

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        base.order_by(AuditLog.created_at.desc(), AuditLog.id)
        .offset((page - 1) * size)
        .limit(size)
    )

    items = [
        AuditLogResponse(
            id=entry.id,
            user_id=entry.user_id,
            user_name=full_name,
            entity=entry.entity,
            entity_id=entry.entity_id,
            action=entry.action,
            old_data=entry.old_data,
            new_data=entry.new_data,
            ip_address=entry.ip_address,
            created_at=entry.created_at,
        )
        for entry, full_name in result.all()
    ]
    pages = (total + size - 1) // size if total > 0 else 1
    return AuditLogListResponse(items=items, total=total, page=page, size=size, pages=pages)
