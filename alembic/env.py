# alembic/env.py
from __future__ import annotations
import asyncio
from logging.config import fileConfig
from sqlalchemy import pool
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from authapp.core.config import settings
from authapp.core.db import Base
from authapp.models import BackupCodeRow, CredentialBindingRow  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
DATABASE_URL = settings.async_database_url


def _configure(**kwargs) -> None:
    # sqlite no soporta ALTER TABLE completo: batch mode
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=make_url(DATABASE_URL).get_backend_name() == "sqlite",
        **kwargs,
    )


def run_migrations_offline() -> None:
    url = make_url(DATABASE_URL)
    _configure(
        url=url.set(drivername=url.get_backend_name()),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = async_engine_from_config(
        {"sqlalchemy.url": DATABASE_URL}, prefix="sqlalchemy.", poolclass=pool.NullPool
    )
    async with engine.connect() as connection:
        await connection.run_sync(_migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
