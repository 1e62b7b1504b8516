from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from voyonx.core.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()
engine: AsyncEngine = create_async_engine(_settings.database_url, pool_pre_ping=True)

# Repositories commit row by row and keep using loaded records afterwards.
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


async def database_ready() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database health check failed", extra={"error": str(exc)})
        return False
    return True


async def dispose_engine() -> None:
    await engine.dispose()
