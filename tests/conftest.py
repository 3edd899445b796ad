from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from payments_service.api.main import create_app
from payments_service.api.payments import PaymentIdempotencyHandler
from payments_service.shared.config import Settings
from payments_service.shared.database import create_engine, create_session_factory, init_db
from payments_service.shared.models import Payment


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        db_connect_attempts=1,
        db_connect_delay=0,
        payment_conflict_read_delay=0,
    )


@pytest.fixture()
def unreachable_settings(tmp_path) -> Settings:
    """Points at a database file whose directory does not exist."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'payments.db'}",
        db_connect_attempts=2,
        db_connect_delay=0,
    )


@pytest.fixture()
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture()
def handler(session_factory) -> PaymentIdempotencyHandler:
    return PaymentIdempotencyHandler(session_factory, conflict_read_delay=0)


@pytest.fixture()
def app(settings: Settings, engine: AsyncEngine) -> FastAPI:
    return create_app(settings, engine=engine)


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def count_payments(session_factory, external_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(Payment).where(Payment.external_id == external_id)
        )
        return result.scalar_one()
