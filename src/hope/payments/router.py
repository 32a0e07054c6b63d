"""Payment API endpoints: buy AC through hosted checkout."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hope.auth.dependencies import get_current_user
from hope.database import get_session
from hope.db.models import User
from hope.payments.gateway import CheckoutGateway, get_gateway
from hope.payments.schemas import CheckoutRequest, ConfirmRequest, ConfirmResponse, PaymentSessionResponse
from hope.payments.service import confirm_deposit, start_deposit
from hope.schemas import Envelope

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


@router.post("/checkout", response_model=Envelope[PaymentSessionResponse], status_code=201)
async def create_checkout(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: CheckoutGateway = Depends(get_gateway),
):
    """Open a checkout session; redirect the user to ``checkout_url``."""
    payment = await start_deposit(db, gateway, user, body.amount_usd)
    await db.commit()
    return Envelope(message="Checkout session created", data=PaymentSessionResponse.model_validate(payment))


@router.post("/confirm", response_model=Envelope[ConfirmResponse])
async def confirm_checkout(
    body: ConfirmRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: CheckoutGateway = Depends(get_gateway),
):
    """Credit a paid session. Safe to call repeatedly for the same session."""
    payment, credited = await confirm_deposit(db, gateway, user, body.session_id)
    message = "Payment confirmed and AC credited" if credited else "Payment already processed"
    return Envelope(
        message=message,
        data=ConfirmResponse(payment=PaymentSessionResponse.model_validate(payment), credited=credited),
    )
