"""Unit tests for currency conversion."""

from __future__ import annotations

from decimal import Decimal

import pytest

from hope.currency import AB, AC, from_ac, min_increment, minimum_next_bid, quantize_cents, to_ac
from hope.errors import InvalidCurrency


class TestConversion:
    """AC is the unit of account; 1 AC = 2 AB."""

    def test_ac_is_identity(self):
        assert to_ac(Decimal("15"), AC) == Decimal("15")
        assert from_ac(Decimal("15"), AC) == Decimal("15")

    def test_ab_halves_into_ac(self):
        assert to_ac(Decimal("30"), AB) == Decimal("15")

    def test_ac_doubles_into_ab(self):
        assert from_ac(Decimal("15"), AB) == Decimal("30")

    @pytest.mark.parametrize("amount", ["0.01", "0.05", "0.99", "1.00", "12.34", "999.99", "100000.01"])
    @pytest.mark.parametrize("currency", [AC, AB])
    def test_conversion_round_trips_at_cents(self, amount, currency):
        value = Decimal(amount)
        assert quantize_cents(to_ac(from_ac(value, currency), currency)) == value
        assert quantize_cents(from_ac(to_ac(value, currency), currency)) == value

    def test_accepts_ints_and_strings(self):
        assert to_ac(10, AB) == Decimal("5")
        assert to_ac("7.5", AC) == Decimal("7.5")

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrency, match="Invalid currency: XYZ"):
            to_ac(Decimal("1"), "XYZ")

    def test_soul_points_do_not_convert(self):
        """SP lives in wallets but never takes part in campaigns."""
        with pytest.raises(InvalidCurrency):
            from_ac(Decimal("1"), "SP")


class TestMinimumNextBid:
    def test_increment_is_one_cent(self):
        assert min_increment(AC) == Decimal("0.01")
        assert min_increment(AB) == Decimal("0.01")

    def test_next_ac_bid(self):
        assert minimum_next_bid(Decimal("15"), AC) == Decimal("15.01")

    def test_next_ab_bid_is_expressed_in_ab(self):
        assert minimum_next_bid(Decimal("15"), AB) == Decimal("30.01")

    def test_rounds_to_cents(self):
        assert quantize_cents(Decimal("15.005")) == Decimal("15.01")
        assert minimum_next_bid(Decimal("7.3333"), AC) == Decimal("7.34")
