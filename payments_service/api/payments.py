"""
Idempotent payment creation backed by a UNIQUE constraint.

Strategy: insert first, resolve conflicts second.
- INSERT the payment in its own transaction.
- On a unique violation of ``external_id`` the row already exists (or is
  being committed by a concurrent request); SELECT it in a fresh
  transaction and return it instead.
- The SELECT is retried a bounded number of times so a row committed just
  after our failed INSERT is still found.

No SELECT precedes the INSERT; the constraint alone decides which
concurrent request creates the row.
"""
from __future__ import annotations

import asyncio
from enum import Enum

import structlog
from prometheus_client import Counter
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payments_service.shared.config import Settings
from payments_service.shared.errors import (
    ConflictResolutionFailed,
    InvalidRequest,
    StoreUnavailable,
)
from payments_service.shared.models import (
    EXTERNAL_ID_CONSTRAINT,
    Payment,
    PaymentStatus,
)
from payments_service.shared.schemas import PaymentRequest

logger = structlog.get_logger(__name__)

PAYMENTS_TOTAL = Counter(
    "payments_total",
    "Payment creation requests by outcome",
    ["outcome"],
)

# Driver messages for a duplicate external_id:
#   PostgreSQL: duplicate key value violates unique constraint "uq_payments_external_id"
#   MySQL:      Duplicate entry 'abc' for key 'payments.uq_payments_external_id'
#   SQLite:     UNIQUE constraint failed: payments.external_id
_CONFLICT_MARKERS = (EXTERNAL_ID_CONSTRAINT, "payments.external_id")


class Outcome(str, Enum):
    created = "created"
    already_exists = "already_exists"


def is_external_id_conflict(exc: IntegrityError) -> bool:
    """True when ``exc`` is a unique violation on ``payments.external_id``."""
    orig = exc.orig
    constraint = getattr(orig, "constraint_name", None) or getattr(
        getattr(orig, "__cause__", None), "constraint_name", None
    )
    if constraint == EXTERNAL_ID_CONSTRAINT:
        return True
    message = str(orig) if orig is not None else str(exc)
    return any(marker in message for marker in _CONFLICT_MARKERS)


class PaymentIdempotencyHandler:
    """Creates payments so that each ``external_id`` maps to exactly one row."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        conflict_read_attempts: int = 3,
        conflict_read_delay: float = 0.05,
        min_amount: int | None = None,
        max_amount: int | None = None,
    ) -> None:
        if conflict_read_attempts < 1:
            raise ValueError("conflict_read_attempts must be at least 1")
        self._session_factory = session_factory
        self._conflict_read_attempts = conflict_read_attempts
        self._conflict_read_delay = conflict_read_delay
        self._min_amount = min_amount
        self._max_amount = max_amount

    @classmethod
    def from_settings(
        cls, session_factory: async_sessionmaker[AsyncSession], settings: Settings
    ) -> PaymentIdempotencyHandler:
        return cls(
            session_factory,
            conflict_read_attempts=settings.payment_conflict_read_attempts,
            conflict_read_delay=settings.payment_conflict_read_delay,
            min_amount=settings.payment_min_amount,
            max_amount=settings.payment_max_amount,
        )

    async def create_payment(self, request: PaymentRequest) -> tuple[Payment, Outcome]:
        """Insert the payment, or return the row that already owns its external_id."""
        self._validate(request)

        try:
            payment = await self._insert(request)
        except IntegrityError as exc:
            if not is_external_id_conflict(exc):
                PAYMENTS_TOTAL.labels(outcome="error").inc()
                raise StoreUnavailable(f"payment insert rejected: {exc.orig}") from exc
            existing = await self._resolve_conflict(request.external_id)
            PAYMENTS_TOTAL.labels(outcome=Outcome.already_exists.value).inc()
            logger.info(
                "payment_replayed",
                payment_id=existing.id,
                external_id=existing.external_id,
            )
            return existing, Outcome.already_exists
        except (SQLAlchemyError, OSError) as exc:
            PAYMENTS_TOTAL.labels(outcome="error").inc()
            raise StoreUnavailable(f"payment insert failed: {exc}") from exc

        PAYMENTS_TOTAL.labels(outcome=Outcome.created.value).inc()
        logger.info(
            "payment_created",
            payment_id=payment.id,
            external_id=payment.external_id,
            amount=payment.amount,
        )
        return payment, Outcome.created

    def _validate(self, request: PaymentRequest) -> None:
        if not request.external_id:
            raise InvalidRequest("external_id must not be empty")
        if self._min_amount is not None and request.amount < self._min_amount:
            raise InvalidRequest(f"amount must be at least {self._min_amount}")
        if self._max_amount is not None and request.amount > self._max_amount:
            raise InvalidRequest(f"amount must be at most {self._max_amount}")

    async def _insert(self, request: PaymentRequest) -> Payment:
        payment = Payment(
            external_id=request.external_id,
            amount=request.amount,
            status=PaymentStatus.success.value,
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(payment)
                await session.flush()
        return payment

    async def _resolve_conflict(self, external_id: str) -> Payment:
        for attempt in range(1, self._conflict_read_attempts + 1):
            try:
                existing = await self._find_by_external_id(external_id)
            except (SQLAlchemyError, OSError) as exc:
                PAYMENTS_TOTAL.labels(outcome="error").inc()
                raise StoreUnavailable(f"payment lookup failed: {exc}") from exc
            if existing is not None:
                return existing
            logger.warning(
                "payment_conflict_row_missing",
                external_id=external_id,
                attempt=attempt,
            )
            if attempt < self._conflict_read_attempts:
                await asyncio.sleep(self._conflict_read_delay)

        PAYMENTS_TOTAL.labels(outcome="error").inc()
        raise ConflictResolutionFailed(
            f"external_id {external_id!r} violated uniqueness but no row was found "
            f"after {self._conflict_read_attempts} reads"
        )

    async def _find_by_external_id(self, external_id: str) -> Payment | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Payment).where(Payment.external_id == external_id)
            )
            return result.scalar_one_or_none()
