"""Shared fixtures: in-memory database, secret box and an API client."""

from __future__ import annotations

import os

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import authapp.models  # noqa: F401  (registers the tables)
from authapp.core.db import Base
from authapp.core.security import SecretBox
from authapp.services.store import CredentialStore

# base32("12345678901234567890"), the RFC 4226 / RFC 6238 SHA-1 test key
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


@pytest.fixture
def box() -> SecretBox:
    return SecretBox(os.urandom(32))


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def store(session_factory, box):
    async with session_factory() as db:
        yield CredentialStore(db, box)


@pytest_asyncio.fixture
async def client(session_factory, box):
    from authapp.api.deps import Owner, get_current_owner, get_store
    from authapp.main import app

    async def _store():
        async with session_factory() as db:
            yield CredentialStore(db, box)

    app.dependency_overrides[get_store] = _store
    app.dependency_overrides[get_current_owner] = lambda: Owner(id="owner-1", name="alice@example.com")
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
