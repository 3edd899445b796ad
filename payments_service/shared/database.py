"""Async SQLAlchemy engine, session management and connection bootstrap."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator

import structlog
from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from payments_service.shared.config import Settings
from payments_service.shared.errors import StoreUnavailable

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the process-wide engine; pool sizing applies to server databases only."""
    kwargs: dict = {"pool_pre_ping": True, "echo": settings.db_echo}
    if make_url(settings.database_url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session bound to the application's engine."""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def connect_with_retry(
    engine: AsyncEngine, attempts: int, delay: float
) -> None:
    """
    Block until the database answers ``SELECT 1``.

    Tries ``attempts`` times, sleeping ``delay`` seconds between tries, and
    raises ``StoreUnavailable`` once every attempt has failed.
    """
    last_error = ""
    for attempt in range(1, attempts + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            last_error = str(exc)
            logger.warning(
                "database_waiting",
                attempt=attempt,
                attempts=attempts,
                error=last_error,
            )
            if attempt < attempts:
                await asyncio.sleep(delay)
            continue
        logger.info("database_connected", attempt=attempt)
        return

    logger.error("database_unreachable", attempts=attempts, error=last_error)
    raise StoreUnavailable(
        f"could not connect to database after {attempts} attempts: {last_error}"
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables defined in the ORM models."""
    from payments_service.shared import models  # noqa: F401 – register models

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
