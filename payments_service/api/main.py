"""
Idempotent Payments API.

Strategy: database UNIQUE constraint on payments.external_id.
- INSERT the payment; a unique violation means another request owns the key
- SELECT the winning row (bounded retries) and return it

Startup waits for the database with a bounded retry loop, then creates
missing tables. The engine and handlers live on ``app.state`` and reach
routes through dependencies.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from sqlalchemy.ext.asyncio import AsyncEngine

from payments_service.api.payments import PaymentIdempotencyHandler
from payments_service.api.routes import router
from payments_service.api.users import UserService
from payments_service.shared.config import Settings
from payments_service.shared.database import (
    connect_with_retry,
    create_engine,
    create_session_factory,
    init_db,
)
from payments_service.shared.errors import register_exception_handlers
from payments_service.shared.middleware import (
    InFlightMiddleware,
    InFlightRequests,
    RequestLoggingMiddleware,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    engine: AsyncEngine = app.state.engine

    logger.info("payments_api_startup", database=engine.url.render_as_string())
    await connect_with_retry(
        engine,
        attempts=settings.db_connect_attempts,
        delay=settings.db_connect_delay,
    )
    await init_db(engine)
    yield
    await engine.dispose()
    logger.info("payments_api_shutdown", inflight=app.state.inflight.active)


def create_app(
    settings: Settings | None = None, engine: AsyncEngine | None = None
) -> FastAPI:
    """Assemble the application around an explicitly supplied store."""
    settings = settings or Settings.from_env()
    engine = engine or create_engine(settings)
    session_factory = create_session_factory(engine)

    app = FastAPI(
        title="Idempotent Payments API",
        description=(
            "Users and payments over a relational store. POST /payments is "
            "idempotent on external_id via a UNIQUE constraint."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.payment_handler = PaymentIdempotencyHandler.from_settings(
        session_factory, settings
    )
    app.state.user_service = UserService(session_factory)
    app.state.inflight = InFlightRequests()

    register_exception_handlers(app)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(InFlightMiddleware, tracker=app.state.inflight)

    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    app.include_router(router)
    return app
