"""
Unit tests for monetary helpers.

Verifies:
- Amount coercion (no binary float expansion)
- Rounding determinism
- Non-negative flooring
"""

from decimal import Decimal

import pytest

from rental_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    non_negative,
    round_money,
    to_money,
)


class TestToMoney:
    """Tests for to_money()."""

    def test_decimal_passthrough(self):
        value = Decimal("700.10")
        assert to_money(value) is value

    def test_string(self):
        assert to_money("1250.50") == Decimal("1250.50")

    def test_int(self):
        assert to_money(700) == Decimal("700")

    def test_float_uses_shortest_repr(self):
        assert to_money(700.1) == Decimal("700.1")

    def test_none(self):
        assert to_money(None) is None

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            to_money(True)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            to_money("seven hundred")

    @pytest.mark.parametrize("value", [
        "NaN", "sNaN", "Infinity", "-Infinity",
        float("nan"), float("inf"),
        Decimal("NaN"), Decimal("-Infinity"),
    ])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError, match="finite"):
            to_money(value)


class TestRoundMoney:
    """Tests for round_money()."""

    def test_default_places(self):
        assert MONEY_DECIMAL_PLACES == 2
        assert round_money(Decimal("10.005")) == Decimal("10.01")

    def test_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_zero_places(self):
        assert round_money(Decimal("99.5"), decimal_places=0) == Decimal("100")

    def test_deterministic(self):
        results = {round_money(Decimal("123.455")) for _ in range(50)}
        assert results == {Decimal("123.46")}


class TestNonNegative:
    def test_positive_kept(self):
        assert non_negative(Decimal("5")) == Decimal("5")

    def test_negative_floored(self):
        assert non_negative(Decimal("-5")) == Decimal("0")
