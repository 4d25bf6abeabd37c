# authapp/core/db.py
from collections.abc import AsyncGenerator
from typing import Any
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from authapp.core.config import settings


def make_engine(url: str) -> AsyncEngine:
    kwargs: dict[str, Any] = {"echo": False}
    if url.startswith("sqlite"):
        # sqlite serializa escrituras: esperar el lock en vez de fallar con "database is locked"
        kwargs["connect_args"] = {"timeout": 30}
    else:
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


engine = make_engine(settings.async_database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

class Base(DeclarativeBase):
    pass

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
