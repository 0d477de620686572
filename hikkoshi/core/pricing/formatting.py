# hikkoshi/core/pricing/formatting.py
"""Display helpers for yen amounts and distances."""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest yen, halves away from zero (``2.5`` → ``3``)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(amount: int) -> str:
    """``5000`` → ``"¥5,000"``; no fractional yen."""
    sign = "-" if amount < 0 else ""
    return f"{sign}¥{abs(round_half_up(amount)):,}"


def format_distance(km: float) -> str:
    """``50`` → ``"50.0 km"``."""
    return f"{km:.1f} km"


def format_rate_percent(rate: float) -> str:
    """``0.3`` → ``"30"``; keeps a fractional part only when there is one."""
    percent = Decimal(str(rate)) * 100
    return format(percent.normalize(), "f")
