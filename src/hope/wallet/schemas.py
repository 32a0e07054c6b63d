"""Pydantic schemas for wallet endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from hope.schemas import MoneyOut


class BalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    currency: str
    available: MoneyOut
    total: MoneyOut
    spent: MoneyOut
    earned: MoneyOut
    updated_at: datetime


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    currency: str
    amount: MoneyOut
    direction: str
    reason: str
    reference: str | None = None
    created_at: datetime
