"""
Migraciones del esquema de rastreabilidad (unidades, catálogo, lotes,
logs de consumo, reservas, gamificación y auditoría).

La URL sale de `Settings.DATABASE_URL` (asyncpg); alembic.ini no la fija.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from app.config import get_settings
from app.database import Base

import app.models  # noqa: F401  registra todas las tablas en Base.metadata

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Las cantidades son Numeric(12, 2) y los estados son enums nativos:
# autogenerate tiene que comparar tipos para ver cambios de precisión.
CONFIGURE_OPTS = {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    """Emite el SQL sin conectarse (alembic upgrade --sql)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    context.configure(connection=connection, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
