"""Async SQLAlchemy engine, session factory, and Base declaration."""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text

from dinescope.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
    pass


def _engine_kwargs(url: str) -> dict:
    # SQLite uses a static pool; pool sizing only applies to server databases.
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(
    settings.database_url,
    echo=(settings.app_env == "development" and settings.log_level.upper() == "DEBUG"),
    **_engine_kwargs(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency: yields an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_db_connectivity() -> bool:
    """Return True if a simple SELECT 1 succeeds."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
