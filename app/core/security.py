"""
Contraseñas de operadores (bcrypt) y datos de origen de la petición que se
graban en `consumption_logs` y `audit_logs`.
"""

import ipaddress

from fastapi import Request
from passlib.context import CryptContext

# ── Hashing de contraseñas ───────────────────────────
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ── Origen de la petición ────────────────────────────
def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_client_ip(request: Request) -> str | None:
    """
    Primera IP de X-Forwarded-For o la de la conexión.
    Un valor que no es una dirección IPv4/IPv6 se descarta (None).
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return _valid_ip(forwarded.split(",")[0])
    if request.client:
        return _valid_ip(request.client.host)
    return None
