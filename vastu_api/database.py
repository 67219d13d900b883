"""
Vastu Samadhan Registration — analytics archive database.

Registrations and live analytics go to the hosted Firebase backend. The
SQL database only holds ``page_analytics`` events the archiver has moved
out of the RTDB, and serves the summary endpoint. SQLite by default.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from vastu_api.config import settings


def _archive_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    # small pool for the hourly archiver
    return create_async_engine(url, echo=False, pool_size=2, max_overflow=3, pool_pre_ping=True)


engine = _archive_engine(settings.database_url)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_archive_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session on the archive."""
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """Create the archive table if it is missing."""
    from vastu_api.models.site_analytics import PageAnalyticsArchive  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
