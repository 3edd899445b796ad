"""Pydantic v2 request/response schemas for the payments API."""
from __future__ import annotations

from pydantic import BaseModel, Field


class PaymentRequest(BaseModel):
    """Request body for creating a payment."""

    external_id: str = Field(
        ..., min_length=1, max_length=255, description="Caller-supplied idempotency key"
    )
    amount: int = Field(
        ...,
        strict=True,
        ge=-(2**63),
        le=2**63 - 1,
        description="Amount in minor currency units (signed 64-bit)",
    )


class PaymentResponse(BaseModel):
    """Response body for a created or replayed payment."""

    id: int
    external_id: str
    amount: int
    status: str

    model_config = {"from_attributes": True}


class UserRequest(BaseModel):
    """Request body for creating a user."""

    name: str = Field(..., max_length=255)
    email: str = Field(..., max_length=255)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: str
    detail: str | None = None
