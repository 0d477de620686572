# tests/test_formatting.py
"""Tests for yen / km display helpers and rounding."""
from __future__ import annotations

import pytest

from hikkoshi.core.pricing.formatting import (
    format_currency,
    format_distance,
    format_rate_percent,
    round_half_up,
)


class TestRoundHalfUp:

    @pytest.mark.parametrize("value,expected", [
        (0.5, 1),
        (1.5, 2),
        (2.5, 3),
        (2.4999, 2),
        (12.5, 13),
        (0, 0),
        (-2.5, -3),
    ])
    def test_halves_round_away_from_zero(self, value, expected):
        assert round_half_up(value) == expected

    def test_returns_int(self):
        assert isinstance(round_half_up(10.0), int)


class TestFormatCurrency:

    def test_thousands_separator(self):
        assert format_currency(5000) == "¥5,000"
        assert format_currency(1234567) == "¥1,234,567"

    def test_zero(self):
        assert format_currency(0) == "¥0"

    def test_negative(self):
        assert format_currency(-500) == "-¥500"


class TestFormatDistance:

    def test_one_decimal(self):
        assert format_distance(50) == "50.0 km"
        assert format_distance(12.34) == "12.3 km"


class TestFormatRatePercent:

    def test_whole_percent(self):
        assert format_rate_percent(0.3) == "30"

    def test_fractional_percent(self):
        assert format_rate_percent(0.125) == "12.5"
