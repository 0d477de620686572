# hikkoshi/core/pricing/engine.py
"""
Estimate engine: composes the fee calculators into an ``EstimateResult``.

Single synchronous pass, no I/O and no clock: the same inputs always give
the same result, so the engine may be called concurrently from any number
of requests.
"""
from __future__ import annotations

import math
from typing import Optional

from hikkoshi.core.pricing.calculators import (
    calculate_base_fee,
    calculate_busy_season_fee,
    calculate_floor_fees,
    calculate_option_fees,
    calculate_storage_fee,
    process_highway_fee,
)
from hikkoshi.core.pricing.config import DEFAULT_PRICING_CONFIG, PricingConfig
from hikkoshi.core.pricing.models import (
    DistanceResult,
    EstimateInputError,
    EstimateOptions,
    EstimateResult,
    FeeBreakdownItem,
    MovingDates,
)


def _validate_distance(distance: Optional[DistanceResult]) -> None:
    if distance is None:
        raise EstimateInputError("Distance is required; run the distance lookup first")
    km = distance.distance_km
    if km is None or isinstance(km, bool) or not isinstance(km, (int, float)):
        raise EstimateInputError(f"distance_km must be a number, got {km!r}")
    if math.isnan(km) or math.isinf(km) or km < 0:
        raise EstimateInputError(f"distance_km must be a finite number >= 0, got {km!r}")


def calculate_estimate(
    distance: DistanceResult,
    options: EstimateOptions,
    dates: Optional[MovingDates] = None,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> EstimateResult:
    """
    Price a move.

    Order of the breakdown (user-facing, stable):
    base/distance → floor → options → highway → storage → busy season.

    Raises:
        EstimateInputError: distance missing, negative or NaN; unparseable date.
    """
    _validate_distance(distance)

    breakdown: list[FeeBreakdownItem] = []

    # 1. Base / distance fee
    base = calculate_base_fee(distance.distance_km, config)
    breakdown.extend(base.items)

    # 2. Floor (stair) fee
    floor = calculate_floor_fees(options, config)
    breakdown.extend(floor.items)

    # 3. Option fees
    option = calculate_option_fees(options, config)
    breakdown.extend(option.items)

    # 4. Highway fee
    highway = process_highway_fee(distance, config)
    if highway.item is not None:
        breakdown.append(highway.item)

    # 5. Storage fee
    storage = calculate_storage_fee(dates, config)
    if storage.item is not None:
        breakdown.append(storage.item)

    # 6. Busy-season surcharge (on the base/distance fee)
    busy = calculate_busy_season_fee(base.total_fee, dates, config)
    if busy.item is not None:
        breakdown.append(busy.item)

    # Stair carrying is an option fee; its lines stay ahead of the other options
    option_fee = floor.total_fee + option.total_fee

    total_fee = base.total_fee + option_fee + highway.fee + storage.fee + busy.fee

    return EstimateResult(
        distance_km=distance.distance_km,
        base_fee=base.total_fee,
        option_fee=option_fee,
        highway_fee=highway.fee,
        storage_fee=storage.fee,
        busy_season_fee=busy.fee,
        total_fee=total_fee,
        breakdown=tuple(breakdown),
        highway_fee_note=highway.note,
        is_inter_prefecture=distance.is_inter_prefecture,
        is_busy_season=busy.is_busy,
        storage_days=storage.days,
    )
