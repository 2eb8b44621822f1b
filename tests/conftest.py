import os

# settings.py builds Settings() at import time
os.environ.setdefault("BOT_TOKEN", "123456:test-bot-token")
os.environ.setdefault("RCON_HOST", "127.0.0.1")
os.environ.setdefault("RCON_PORT", "25575")
os.environ.setdefault("RCON_PASSWORD", "test-password")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db import Base
import models.binding  # noqa: F401


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
