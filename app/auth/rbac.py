"""
Definición de permisos RBAC por rol.
Mapea qué acciones puede realizar cada rol.
"""

from app.models.user import UserRole

_ALL = [UserRole.ADMIN, UserRole.MANAGER, UserRole.TECHNICIAN, UserRole.AUDITOR]
_STAFF = [UserRole.ADMIN, UserRole.MANAGER, UserRole.TECHNICIAN]
_MANAGEMENT = [UserRole.ADMIN, UserRole.MANAGER]

# ── Permisos por recurso ─────────────────────────────
# Formato: {recurso: {acción: [roles permitidos]}}
# El auditor solo lee.
PERMISSIONS: dict[str, dict[str, list[UserRole]]] = {
    "catalog": {
        "read": _ALL,
        "write": _MANAGEMENT,
    },
    "lot": {
        "read": _ALL,
        "register": _STAFF,
        "consume": _STAFF,
        "transfer": _STAFF,
        "dispose": _STAFF,
        "adjust": _MANAGEMENT,
    },
    "appointment": {
        "read": _ALL,
        "create": _STAFF,
        "update": _STAFF,
    },
    "log": {
        "read": _ALL,
        "export": _ALL,
    },
    "dashboard": {
        "read": _ALL,
    },
    "gamification": {
        "read": _ALL,
    },
    "user": {
        "read": [UserRole.ADMIN],
        "create": [UserRole.ADMIN],
        "update": [UserRole.ADMIN],
    },
    "audit_log": {
        "read": [UserRole.ADMIN, UserRole.AUDITOR],
    },
}


def has_permission(role: UserRole, resource: str, action: str) -> bool:
    """Verifica si un rol tiene permiso para una acción en un recurso."""
    resource_perms = PERMISSIONS.get(resource, {})
    allowed_roles = resource_perms.get(action, [])
    return role in allowed_roles
