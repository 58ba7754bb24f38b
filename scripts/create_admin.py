"""
Crea el primer usuario administrador (y opcionalmente su unidad).

Uso:
    python scripts/create_admin.py <email> <password> "<nombre completo>" [unidad]

Si el email ya existe, no hace nada.
"""

import asyncio
import sys
from pathlib import Path

from sqlalchemy import select

# Agregar el directorio raíz al path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.security import hash_password  # noqa: E402
from app.database import async_session_factory  # noqa: E402
from app.models.unit import Unit  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402


async def create_admin(email: str, password: str, full_name: str, unit_name: str | None) -> None:
    async with async_session_factory() as db:
        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            print(f"El usuario {email} ya existe, omitiendo.")
            return

        unit_id = None
        if unit_name:
            result = await db.execute(select(Unit).where(Unit.name == unit_name))
            unit = result.scalar_one_or_none()
            if not unit:
                unit = Unit(name=unit_name)
                db.add(unit)
                await db.flush()
                print(f"Unidad creada: {unit_name}")
            unit_id = unit.id

        db.add(User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=UserRole.ADMIN,
            unit_id=unit_id,
        ))
        await db.commit()
        print(f"✅ Administrador creado: {email}")


if __name__ == "__main__":
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)
    asyncio.run(create_admin(
        sys.argv[1], sys.argv[2], sys.argv[3], sys.argv[4] if len(sys.argv) > 4 else None
    ))
