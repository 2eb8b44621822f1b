from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy import create_engine

from settings import settings


POSTGRES_DSN = settings.postgres_dsn
POSTGRES_DSN_SYNC = POSTGRES_DSN.replace("+asyncpg", "") if POSTGRES_DSN else ""

Base = declarative_base()

_engine = None
_SessionLocal = None
_alembic_engine = None


def _require_dsn(dsn: str) -> str:
    if not dsn or "://" not in dsn:
        raise RuntimeError("POSTGRES_DSN is not configured")
    return dsn


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(_require_dsn(POSTGRES_DSN), future=True)
    return _engine


def get_sessionmaker():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _SessionLocal


def get_alembic_engine():
    global _alembic_engine
    if _alembic_engine is None:
        _alembic_engine = create_engine(_require_dsn(POSTGRES_DSN_SYNC), future=True)
    return _alembic_engine


async def get_db():
    async with get_sessionmaker()() as session:
        yield session
