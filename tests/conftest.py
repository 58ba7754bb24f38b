"""
Fixtures compartidas para Pytest.
Configura claves JWT de test, base de datos SQLite async y clientes HTTP.
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# ── Claves RSA de test (antes de importar la app) ────
_keys_dir = Path(tempfile.mkdtemp(prefix="reagent-keys-"))
_private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
(_keys_dir / "private.pem").write_bytes(
    _private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
)
(_keys_dir / "public.pem").write_bytes(
    _private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
)
os.environ["JWT_PRIVATE_KEY_PATH"] = str(_keys_dir / "private.pem")
os.environ["JWT_PUBLIC_KEY_PATH"] = str(_keys_dir / "public.pem")
os.environ.setdefault("APP_ENV", "testing")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.auth.jwt import create_access_token  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.reagent import ExamType, Manufacturer, Reagent, UnitMeasure  # noqa: E402
from app.models.unit import Unit  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402

# ── Engine de test (SQLite async) ─────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

TEST_PASSWORD = "TestPass123"
PHOTO = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD"


@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Crea y destruye las tablas para cada test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provee una sesión de DB de test."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP de test que usa la DB de test."""

    async def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role.value, user.unit_id)
    return {"Authorization": f"Bearer {token}"}


# ── Catálogo ─────────────────────────────────────────


@pytest_asyncio.fixture
async def test_unit(db_session: AsyncSession) -> Unit:
    unit = Unit(id=uuid4(), name="Laboratório Central", location="Bloco A")
    db_session.add(unit)
    await db_session.commit()
    await db_session.refresh(unit)
    return unit


@pytest_asyncio.fixture
async def other_unit(db_session: AsyncSession) -> Unit:
    unit = Unit(id=uuid4(), name="Unidade Norte", location="Bloco C")
    db_session.add(unit)
    await db_session.commit()
    await db_session.refresh(unit)
    return unit


@pytest_asyncio.fixture
async def test_manufacturer(db_session: AsyncSession) -> Manufacturer:
    manufacturer = Manufacturer(id=uuid4(), name="Labtest Diagnóstica")
    db_session.add(manufacturer)
    await db_session.commit()
    await db_session.refresh(manufacturer)
    return manufacturer


@pytest_asyncio.fixture
async def test_reagent(db_session: AsyncSession) -> Reagent:
    reagent = Reagent(
        id=uuid4(),
        name="Glicose Enzimática",
        unit_measure=UnitMeasure.ML,
        minimum_stock=Decimal("20"),
    )
    db_session.add(reagent)
    await db_session.commit()
    await db_session.refresh(reagent)
    return reagent


@pytest_asyncio.fixture
async def test_exam_type(db_session: AsyncSession, test_reagent: Reagent) -> ExamType:
    exam_type = ExamType(
        id=uuid4(),
        name="Glicemia de Jejum",
        required_reagents=[{"reagent_id": str(test_reagent.id), "quantity": "5"}],
    )
    db_session.add(exam_type)
    await db_session.commit()
    await db_session.refresh(exam_type)
    return exam_type


# ── Usuarios por rol ─────────────────────────────────


async def _make_user(db: AsyncSession, unit: Unit, role: UserRole, email: str, name: str) -> User:
    user = User(
        id=uuid4(),
        unit_id=unit.id,
        email=email,
        hashed_password=hash_password(TEST_PASSWORD),
        role=role,
        full_name=name,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession, test_unit: Unit) -> User:
    return await _make_user(db_session, test_unit, UserRole.ADMIN, "admin@test.com", "Ana Admin")


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession, test_unit: Unit) -> User:
    return await _make_user(db_session, test_unit, UserRole.MANAGER, "gestor@test.com", "Gustavo Gestor")


@pytest_asyncio.fixture
async def technician_user(db_session: AsyncSession, test_unit: Unit) -> User:
    return await _make_user(db_session, test_unit, UserRole.TECHNICIAN, "tecnico@test.com", "Tânia Técnica")


@pytest_asyncio.fixture
async def auditor_user(db_session: AsyncSession, test_unit: Unit) -> User:
    return await _make_user(db_session, test_unit, UserRole.AUDITOR, "auditor@test.com", "Aurélio Auditor")


# ── Lotes ────────────────────────────────────────────


@pytest_asyncio.fixture
async def make_lot(client: AsyncClient, technician_user: User, test_reagent: Reagent, test_unit: Unit):
    """Registra lotes vía API y devuelve el `lot` de la respuesta."""

    async def _make(**overrides) -> dict:
        body = {
            "reagent_id": str(test_reagent.id),
            "unit_id": str(test_unit.id),
            "lot_number": f"L{uuid4().hex[:8].upper()}",
            "initial_quantity": "100",
            "expiry_date": (date.today() + timedelta(days=180)).isoformat(),
            "location": "Geladeira A2",
        }
        body.update(overrides)
        response = await client.post("/api/v1/lots", json=body, headers=auth_headers(technician_user))
        assert response.status_code == 201, response.text
        return response.json()["lot"]

    return _make


def discard_body(**overrides) -> dict:
    body = {
        "reason": "Vencido",
        "checklist": [1, 2, 3, 4, 5, 6],
        "photos": [PHOTO],
    }
    body.update(overrides)
    return body
