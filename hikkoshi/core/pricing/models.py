# hikkoshi/core/pricing/models.py
"""
Domain types for the estimate engine.

Every value here is immutable. ``EstimateResult`` is created once per
engine call and handed verbatim to the presentation layer and the
estimate store.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional


__all__ = [
    "EstimateInputError",
    "Address", "MovingDates", "DistanceResult", "EstimateOptions",
    "FeeBreakdownItem", "FeeBundle",
    "HighwayFeeResult", "StorageFeeResult", "BusySeasonResult",
    "EstimateResult",
]


class EstimateInputError(ValueError):
    """Caller passed inputs the engine cannot price (bad distance, bad date)."""


# ============================================================================
# INPUTS
# ============================================================================

@dataclass(frozen=True)
class Address:
    prefecture: str
    city: str
    town: Optional[str] = None

    def full_text(self) -> str:
        """Concatenated address the way it is written in Japanese."""
        return f"{self.prefecture}{self.city}{self.town or ''}"


@dataclass(frozen=True)
class MovingDates:
    """Pickup / delivery dates as ISO ``YYYY-MM-DD`` strings (either may be empty)."""
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None


@dataclass(frozen=True)
class DistanceResult:
    """
    Output of the distance provider.

    ``highway_fee=None`` means the toll could not be obtained, which is
    different from ``0`` (confirmed toll-free route).
    """
    distance_km: float
    highway_fee: Optional[int]
    is_inter_prefecture: bool


@dataclass(frozen=True)
class EstimateOptions:
    has_elevator_pickup: bool = False
    floor_pickup: int = 1
    has_elevator_delivery: bool = False
    floor_delivery: int = 1
    needs_packing: bool = False

    # Reserved flags; the default pricing table ignores them
    has_piano: bool = False
    has_aircon: bool = False
    has_furniture_assembly: bool = False


# ============================================================================
# CALCULATOR OUTPUTS
# ============================================================================

@dataclass(frozen=True)
class FeeBreakdownItem:
    name: str
    amount: int
    note: Optional[str] = None


@dataclass(frozen=True)
class FeeBundle:
    """Multi-line calculator output."""
    total_fee: int
    items: tuple[FeeBreakdownItem, ...] = ()


@dataclass(frozen=True)
class HighwayFeeResult:
    fee: int
    item: Optional[FeeBreakdownItem] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class StorageFeeResult:
    fee: int
    days: int
    item: Optional[FeeBreakdownItem] = None


@dataclass(frozen=True)
class BusySeasonResult:
    fee: int
    is_busy: bool
    item: Optional[FeeBreakdownItem] = None


# ============================================================================
# AGGREGATE
# ============================================================================

@dataclass(frozen=True)
class EstimateResult:
    """
    ``total_fee == base_fee + option_fee + highway_fee + storage_fee + busy_season_fee``
    and equals the sum of the breakdown amounts. ``option_fee`` includes the
    stair-carry lines.
    """
    distance_km: float
    base_fee: int
    option_fee: int
    highway_fee: int
    storage_fee: int
    busy_season_fee: int
    total_fee: int
    breakdown: tuple[FeeBreakdownItem, ...] = field(default_factory=tuple)
    highway_fee_note: Optional[str] = None
    is_inter_prefecture: bool = False
    is_busy_season: bool = False
    storage_days: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["breakdown"] = [asdict(item) for item in self.breakdown]
        return data
