"""
HTTP routes.

GET  /users              – list users
POST /users              – create a user
POST /payments           – idempotent payment creation keyed by external_id
GET  /payments/{id}      – fetch a payment by id
GET  /health             – liveness

POST /payments answers with the same body whether the payment was created
or replayed; ``X-Idempotency-Replay`` tells the two apart.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payments_service.api.payments import Outcome, PaymentIdempotencyHandler
from payments_service.api.users import UserService
from payments_service.shared.database import get_db
from payments_service.shared.errors import NotFound, StoreUnavailable
from payments_service.shared.models import Payment
from payments_service.shared.schemas import (
    ErrorResponse,
    PaymentRequest,
    PaymentResponse,
    UserRequest,
    UserResponse,
)

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_payment_handler(request: Request) -> PaymentIdempotencyHandler:
    return request.app.state.payment_handler


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


@router.get(
    "/users",
    response_model=list[UserResponse],
    tags=["users"],
    summary="List users",
    responses={500: {"model": ErrorResponse}},
)
async def list_users(
    users: UserService = Depends(get_user_service),
) -> list[UserResponse]:
    return [UserResponse.model_validate(user) for user in await users.list_users()]


@router.post(
    "/users",
    response_model=UserResponse,
    tags=["users"],
    summary="Create user",
    responses=ERROR_RESPONSES,
)
async def create_user(
    body: UserRequest,
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    user = await users.create_user(body.name, body.email)
    return UserResponse.model_validate(user)


@router.post(
    "/payments",
    response_model=PaymentResponse,
    tags=["payments"],
    summary="Create payment (idempotent on external_id)",
    responses=ERROR_RESPONSES,
)
async def create_payment(
    body: PaymentRequest,
    request: Request,
    handler: PaymentIdempotencyHandler = Depends(get_payment_handler),
) -> JSONResponse:
    """
    Create a payment, or return the existing one for a repeated external_id.

    Status is ``PAYMENT_CREATED_STATUS`` (200 unless configured) for a new
    payment and always 200 for a replay.
    """
    payment, outcome = await handler.create_payment(body)
    is_new = outcome is Outcome.created
    status_code = request.app.state.settings.payment_created_status if is_new else 200

    return JSONResponse(
        content=PaymentResponse.model_validate(payment).model_dump(mode="json"),
        status_code=status_code,
        headers={"X-Idempotency-Replay": "false" if is_new else "true"},
    )


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentResponse,
    tags=["payments"],
    summary="Get payment by ID",
    responses={404: {"model": ErrorResponse}},
)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    try:
        result = await db.execute(select(Payment).where(Payment.id == payment_id))
    except (SQLAlchemyError, OSError) as exc:
        raise StoreUnavailable(f"payment lookup failed: {exc}") from exc
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFound(f"payment {payment_id} not found")
    return PaymentResponse.model_validate(payment)


@router.get("/health", summary="Health check")
async def health() -> dict:
    return {"status": "ok", "service": "payments"}
