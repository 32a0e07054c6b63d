"""Virtual-currency wallet: atomic debits and credits.

Every balance change is a single conditional UPDATE so two concurrent
requests can never both spend the same coins:

    UPDATE wallets SET available = available - :amount
    WHERE user_id = :user AND currency = :cur AND available >= :amount

Zero rows updated means the balance was insufficient and nothing changed.
Each movement is also appended to ``wallet_transactions``.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hope.currency import WALLET_CURRENCIES
from hope.db.base import utcnow
from hope.db.models import WalletBalance, WalletTransaction
from hope.errors import InsufficientFunds, InvalidCurrency, Rejected, UpstreamFailure

logger = structlog.get_logger()

DEBIT = "debit"
CREDIT = "credit"


def _check(currency: str, amount: Decimal) -> Decimal:
    if currency not in WALLET_CURRENCIES:
        raise InvalidCurrency(currency)
    amount = Decimal(amount)
    if amount <= 0:
        raise Rejected("Amount must be positive")
    return amount


async def get_balance(db: AsyncSession, user_id: int, currency: str) -> WalletBalance | None:
    """Fetch the current wallet row, bypassing any stale identity-map copy."""
    result = await db.execute(
        select(WalletBalance)
        .where(WalletBalance.user_id == user_id, WalletBalance.currency == currency)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_balances(db: AsyncSession, user_id: int) -> list[WalletBalance]:
    """All wallet rows for a user, ordered by currency."""
    result = await db.execute(
        select(WalletBalance)
        .where(WalletBalance.user_id == user_id)
        .order_by(WalletBalance.currency)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def debit(
    db: AsyncSession,
    user_id: int,
    currency: str,
    amount: Decimal,
    reason: str,
    reference: str | None = None,
) -> None:
    """Atomically take ``amount`` from the user's available balance.

    Raises InsufficientFunds (and mutates nothing) when the balance is short
    or the wallet does not exist.
    """
    amount = _check(currency, amount)
    result = await db.execute(
        update(WalletBalance)
        .where(
            WalletBalance.user_id == user_id,
            WalletBalance.currency == currency,
            WalletBalance.available >= amount,
        )
        .values(
            available=WalletBalance.available - amount,
            spent=WalletBalance.spent + amount,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientFunds(amount, currency)

    db.add(WalletTransaction(
        user_id=user_id,
        currency=currency,
        amount=amount,
        direction=DEBIT,
        reason=reason,
        reference=reference,
    ))
    await db.flush()
    logger.info("wallet_debited", user_id=user_id, currency=currency, amount=str(amount), reason=reason)


async def credit(
    db: AsyncSession,
    user_id: int,
    currency: str,
    amount: Decimal,
    reason: str,
    reference: str | None = None,
    *,
    earned: bool = False,
    reverses_spend: bool = False,
) -> None:
    """Atomically add ``amount`` to the user's wallet, creating it if needed.

    ``earned`` also bumps the earned counter (payouts); ``reverses_spend``
    undoes a prior debit's spent counter (refunds and compensations).
    """
    amount = _check(currency, amount)
    values = {
        "available": WalletBalance.available + amount,
        "updated_at": utcnow(),
    }
    if reverses_spend:
        values["spent"] = case(
            (WalletBalance.spent > amount, WalletBalance.spent - amount),
            else_=Decimal("0"),
        )
    else:
        values["total"] = WalletBalance.total + amount
    if earned:
        values["earned"] = WalletBalance.earned + amount

    stmt = (
        update(WalletBalance)
        .where(WalletBalance.user_id == user_id, WalletBalance.currency == currency)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        try:
            async with db.begin_nested():
                db.add(WalletBalance(
                    user_id=user_id,
                    currency=currency,
                    available=amount,
                    total=amount,
                    earned=amount if earned else Decimal("0"),
                ))
        except IntegrityError:
            # Another request created the row first
            result = await db.execute(stmt)
            if result.rowcount != 1:
                raise UpstreamFailure(f"Could not credit wallet for user {user_id}") from None

    db.add(WalletTransaction(
        user_id=user_id,
        currency=currency,
        amount=amount,
        direction=CREDIT,
        reason=reason,
        reference=reference,
    ))
    await db.flush()
    logger.info("wallet_credited", user_id=user_id, currency=currency, amount=str(amount), reason=reason)


async def list_transactions(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[WalletTransaction], int]:
    """Paginated wallet history, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(WalletTransaction).where(WalletTransaction.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total
