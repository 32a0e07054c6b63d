"""Virtual currency conversion.

Two currencies circulate on the platform: AC and AB, at a fixed
1 AC = 2 AB. Every cross-currency comparison is made on AC-equivalent
amounts, and this table is the only place the rate lives.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from hope.errors import InvalidCurrency

AC = "AC"
AB = "AB"
SOUL_POINTS = "SP"

# Units of the currency worth 1 AC.
EXCHANGE_RATES: dict[str, Decimal] = {
    AC: Decimal("1"),
    AB: Decimal("2"),
}

CAMPAIGN_CURRENCIES = frozenset(EXCHANGE_RATES)
WALLET_CURRENCIES = frozenset({AC, AB, SOUL_POINTS})

CENT = Decimal("0.01")


def _rate(currency: str) -> Decimal:
    try:
        return EXCHANGE_RATES[currency]
    except KeyError:
        raise InvalidCurrency(currency) from None


def to_ac(amount: Decimal | int | str, currency: str) -> Decimal:
    """Convert an amount in ``currency`` to its AC equivalent."""
    return Decimal(amount) / _rate(currency)


def from_ac(amount_ac: Decimal | int | str, currency: str) -> Decimal:
    """Convert an AC amount into ``currency``."""
    return Decimal(amount_ac) * _rate(currency)


def min_increment(currency: str) -> Decimal:
    """Smallest step a bid may rise by, expressed in ``currency``."""
    _rate(currency)
    return CENT


def quantize_cents(amount: Decimal) -> Decimal:
    """Round to cents for display."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def minimum_next_bid(current_highest_ac: Decimal, currency: str) -> Decimal:
    """Smallest bid in ``currency`` that strictly beats ``current_highest_ac``."""
    return quantize_cents(from_ac(current_highest_ac, currency)) + min_increment(currency)
