"""SQLAlchemy ORM models for users and payments."""
from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import BigInteger, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from payments_service.shared.database import Base

EXTERNAL_ID_CONSTRAINT = "uq_payments_external_id"


class PaymentStatus(str, PyEnum):
    success = "SUCCESS"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Payment(Base):
    """
    A single payment, keyed for deduplication by ``external_id``.

    The unique constraint is the only thing that serialises concurrent
    requests carrying the same key.
    """

    __tablename__ = "payments"
    __table_args__ = (UniqueConstraint("external_id", name=EXTERNAL_ID_CONSTRAINT),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.success.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
