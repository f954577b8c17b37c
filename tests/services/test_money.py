"""Tests for menu_pricing/services/money.py - rounding at the presentation boundary."""
from decimal import Decimal

import pytest

from menu_pricing.services.money import ceil_money, round_money, round_rate, to_decimal_money


class TestRounding:
    @pytest.mark.parametrize("value, expected", [
        (23.809523, 23.81),
        (2.675, 2.68),  # Half-up on the decimal value, not the binary float
        (0.004, 0.0),
        (-1.005, -1.01),
    ])
    def test_round_money(self, value, expected):
        assert round_money(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (1.0714, 1.08),
        (8.5714, 8.58),
        (1.07, 1.07),
        (1.07 + 3e-16, 1.07),  # Float noise does not bump a whole cent
    ])
    def test_ceil_money(self, value, expected):
        assert ceil_money(value) == expected

    def test_round_rate(self):
        assert round_rate(0.224999) == 0.225
        assert round_rate(1 / 3) == 0.3333

    def test_to_decimal_money(self):
        assert to_decimal_money(19.296) == Decimal("19.30")
