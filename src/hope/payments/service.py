"""AC deposits through the checkout gateway, and scheduled seller payouts.

Deposits:
    start_deposit    -> gateway session + payment_sessions row (pending)
    confirm_deposit  -> credits AC exactly once per gateway session

The buyer pays ``amount_usd``; they receive ``amount_usd * usd_to_ac_rate``
less the platform fee, rounded to cents.

Payouts move each due ``pending_payments`` row through
pending -> processing -> completed | failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Row, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.config import get_settings
from hope.currency import AC, quantize_cents
from hope.db.base import utcnow
from hope.db.models import PaymentSession, PendingPayment, User
from hope.errors import LedgerError, NotFound, Rejected, Unauthorized
from hope.payments.gateway import CheckoutGateway
from hope.wallet import service as wallet

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


def credit_for(amount_usd: Decimal) -> Decimal:
    """AC credited for a USD payment after the platform fee."""
    settings = get_settings()
    return quantize_cents(Decimal(amount_usd) * settings.usd_to_ac_rate * (1 - settings.platform_fee_rate))


async def start_deposit(
    db: AsyncSession,
    gateway: CheckoutGateway,
    user: User,
    amount_usd: Decimal,
) -> PaymentSession:
    """Open a checkout session for an AC purchase."""
    credit = credit_for(amount_usd)
    if credit <= 0:
        raise Rejected("Amount is too small")

    metadata = {
        "user_id": str(user.id),
        "original_amount": str(amount_usd),
        "credit_amount": str(credit),
        "credit_currency": AC,
    }
    checkout = await gateway.create_session(
        amount_usd,
        description=f"{credit} AnamCoins",
        metadata=metadata,
        customer_email=user.email,
    )

    payment = PaymentSession(
        external_id=checkout.id,
        user_id=user.id,
        amount_usd=amount_usd,
        credit_amount=credit,
        credit_currency=AC,
        status=PENDING,
        checkout_url=checkout.url,
        metadata_=metadata,
    )
    db.add(payment)
    await db.flush()

    logger.info("Checkout %s opened for user %d: %s USD -> %s AC", checkout.id, user.id, amount_usd, credit)
    return payment


async def confirm_deposit(
    db: AsyncSession,
    gateway: CheckoutGateway,
    user: User,
    external_id: str,
) -> tuple[PaymentSession, bool]:
    """Credit a paid checkout session. Returns (session, credited_now).

    Confirming the same session twice never credits twice: the
    pending -> completed transition is a conditional UPDATE.
    """
    result = await db.execute(select(PaymentSession).where(PaymentSession.external_id == external_id))
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFound("Payment session not found")
    if payment.user_id != user.id:
        raise Unauthorized("This payment belongs to another user")
    if payment.status == COMPLETED:
        return payment, False

    checkout = await gateway.retrieve_session(external_id)
    if not checkout.is_paid:
        raise Rejected("Payment not completed")

    now = utcnow()
    transition = await db.execute(
        update(PaymentSession)
        .where(PaymentSession.id == payment.id, PaymentSession.status == PENDING)
        .values(status=COMPLETED, completed_at=now)
        .execution_options(synchronize_session=False)
    )
    if transition.rowcount != 1:
        await db.rollback()
        await db.refresh(payment)
        return payment, False

    await wallet.credit(
        db,
        payment.user_id,
        payment.credit_currency,
        payment.credit_amount,
        "deposit",
        f"payment:{external_id}",
    )
    await db.commit()
    await db.refresh(payment)

    logger.info("Checkout %s confirmed: %s AC credited to user %d", external_id, payment.credit_amount, user.id)
    return payment, True


@dataclass
class PayoutReport:
    completed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


async def _process_one(db: AsyncSession, payment: Row, report: PayoutReport) -> None:
    payment_id, seller_id, amount, currency = payment

    claimed = await db.execute(
        update(PendingPayment)
        .where(PendingPayment.id == payment_id, PendingPayment.status == PENDING)
        .values(status=PROCESSING, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if claimed.rowcount != 1:
        return

    try:
        await wallet.credit(
            db,
            seller_id,
            currency,
            amount,
            "payout",
            f"payout:{payment_id}",
            earned=True,
        )
        await db.execute(
            update(PendingPayment)
            .where(PendingPayment.id == payment_id)
            .values(status=COMPLETED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        report.completed.append(payment_id)
        logger.info("Transferred %s %s to seller %d", amount, currency, seller_id)
    except (SQLAlchemyError, LedgerError) as exc:
        await db.rollback()
        logger.error("Failed to process payment %d: %s", payment_id, exc)
        await db.execute(
            update(PendingPayment)
            .where(PendingPayment.id == payment_id)
            .values(status=FAILED, error_message=str(exc)[:1000], updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        report.failed.append(payment_id)


async def process_pending_payments(
    db: AsyncSession,
    now: datetime | None = None,
    batch_size: int = 50,
) -> PayoutReport:
    """Settle every due pending payout, ``batch_size`` rows at a time."""
    now = now or utcnow()
    report = PayoutReport()
    while True:
        # plain rows: a failed payout rolls back and would expire ORM instances
        result = await db.execute(
            select(PendingPayment.id, PendingPayment.seller_id, PendingPayment.amount, PendingPayment.currency)
            .where(PendingPayment.status == PENDING, PendingPayment.payout_date <= now)
            .order_by(PendingPayment.payout_date.asc(), PendingPayment.id.asc())
            .limit(batch_size)
        )
        batch = result.all()
        if not batch:
            break
        for payment in batch:
            await _process_one(db, payment, report)

    logger.info(
        "Payment processing completed. %d completed, %d failed",
        len(report.completed),
        len(report.failed),
    )
    return report
