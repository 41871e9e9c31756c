"""Database engines and session factories."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.infrastructure.database.models import Base

logger = logging.getLogger(__name__)

# Pooled engine for the API process (request handlers and detached
# notification jobs share its single event loop).
engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Celery workers call asyncio.run() once per task, so pooled connections would
# be bound to a dead loop on the next task.  NullPool opens a fresh connection
# per session and closes it right after.
worker_engine = create_async_engine(settings.database_url, echo=False, poolclass=NullPool)
worker_session_maker = async_sessionmaker(
    worker_engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session."""
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """Create missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def close_db() -> None:
    await engine.dispose()
