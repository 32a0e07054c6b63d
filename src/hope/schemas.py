"""Response envelope shared by every endpoint."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Generic, TypeVar

from pydantic import BaseModel, PlainSerializer

T = TypeVar("T")

# Money leaves the API as a JSON number
MoneyOut = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        return cls(page=page, limit=limit, total=total, pages=(total + limit - 1) // limit if limit else 0)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    pagination: Pagination | None = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    error: Any = None
