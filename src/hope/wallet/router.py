"""Wallet API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hope.auth.dependencies import get_current_user
from hope.database import get_session
from hope.db.models import User
from hope.schemas import Envelope, Pagination
from hope.wallet.schemas import BalanceResponse, TransactionResponse
from hope.wallet.service import get_balances, list_transactions

router = APIRouter(prefix="/api/v1/wallet", tags=["Wallet"])


@router.get("", response_model=Envelope[list[BalanceResponse]])
async def get_wallet(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's balances, one entry per currency held."""
    balances = await get_balances(db, user.id)
    return Envelope(
        message="Wallet retrieved successfully",
        data=[BalanceResponse.model_validate(b) for b in balances],
    )


@router.get("/transactions", response_model=Envelope[list[TransactionResponse]])
async def get_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await list_transactions(db, user.id, page, limit)
    return Envelope(
        message="Transactions retrieved successfully",
        data=[TransactionResponse.model_validate(t) for t in rows],
        pagination=Pagination.build(page, limit, total),
    )
