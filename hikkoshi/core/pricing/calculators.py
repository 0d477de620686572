# hikkoshi/core/pricing/calculators.py
"""
Fee calculators for the estimate engine.

Each calculator is a pure function of its inputs and a ``PricingConfig``
and returns the fee together with the breakdown line(s) it contributes.
The engine calls them in this order:

1. **Base / distance fee**: ``none`` | ``fixed`` | ``per_km`` | ``progressive``.
2. **Floor (stair) fee**: per floor above the free threshold, pickup and
   delivery computed independently, only without an elevator.
3. **Option fees**: configured entries whose condition holds, in
   declared order.
4. **Highway fee**: toll from the distance provider, inter-prefecture only.
5. **Storage fee**: per day between pickup and delivery.
6. **Busy-season surcharge**: percentage of the base/distance fee when
   the pickup date falls inside the busy window.

All amounts are rounded half-up to whole yen.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from hikkoshi.core.pricing.config import PricingConfig
from hikkoshi.core.pricing.formatting import (
    format_currency,
    format_rate_percent,
    round_half_up,
)
from hikkoshi.core.pricing.models import (
    BusySeasonResult,
    DistanceResult,
    EstimateInputError,
    EstimateOptions,
    FeeBreakdownItem,
    FeeBundle,
    HighwayFeeResult,
    MovingDates,
    StorageFeeResult,
)
from hikkoshi.infra.logging_config import get_logger

__all__ = [
    "parse_iso_date",
    "calculate_base_fee", "calculate_floor_fees", "calculate_option_fees",
    "process_highway_fee", "calculate_storage_days", "calculate_storage_fee",
    "is_busy_season", "calculate_busy_season_fee",
]

logger = get_logger(__name__)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """``"2025-06-01"`` → ``date``; empty / ``None`` → ``None``."""
    if not value:
        return None
    try:
        # Accept full ISO timestamps too ("2025-06-01T00:00:00.000Z")
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        raise EstimateInputError(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


# ---------------------------------------------------------------------------
# 1. Base / distance fee
# ---------------------------------------------------------------------------

def calculate_base_fee(distance_km: float, config: PricingConfig) -> FeeBundle:
    """Base fee for the configured mode. Unknown modes price at 0 with no line."""
    mode = config.base_fee_mode

    if mode == "none":
        return FeeBundle(total_fee=0)

    if mode == "fixed":
        fee = config.fixed_base_fee
        return FeeBundle(
            total_fee=fee,
            items=(FeeBreakdownItem(name=config.fixed_label, amount=fee),),
        )

    if mode == "per_km":
        fee = round_half_up(distance_km * config.per_km_rate)
        return FeeBundle(
            total_fee=fee,
            items=(FeeBreakdownItem(
                name=config.per_km_label,
                amount=fee,
                note=f"{distance_km:.1f}km × {config.per_km_rate:g}円/km",
            ),),
        )

    if mode == "progressive":
        return _calculate_progressive_fee(distance_km, config)

    logger.warning(f"Unknown base fee mode {mode!r}: base fee priced at 0")
    return FeeBundle(total_fee=0)


def _calculate_progressive_fee(distance_km: float, config: PricingConfig) -> FeeBundle:
    prog = config.progressive
    items = [FeeBreakdownItem(name=prog.base_label, amount=prog.base_fee)]

    # Bands are validated ascending; a distance on a boundary stays in the lower band
    for band in prog.bands:
        marginal = band.marginal_km(distance_km)
        if marginal <= 0:
            continue
        if band.max_km is None:
            span = f"{band.min_km:g}km超"
        else:
            span = f"{band.min_km:g}〜{band.max_km:g}km"
        items.append(FeeBreakdownItem(
            name=f"{prog.band_label}（{span}）",
            amount=round_half_up(marginal * band.rate_per_km),
            note=f"{marginal:.1f}km × {band.rate_per_km:g}円/km",
        ))

    return FeeBundle(total_fee=sum(item.amount for item in items), items=tuple(items))


# ---------------------------------------------------------------------------
# 2. Floor (stair) fee
# ---------------------------------------------------------------------------

def _floor_line(
    floor: int,
    has_elevator: bool,
    label: str,
    config: PricingConfig,
) -> Optional[FeeBreakdownItem]:
    rule = config.floor
    if has_elevator or floor <= rule.free_until_floor or rule.fee_per_floor == 0:
        return None
    floors = floor - rule.free_until_floor
    return FeeBreakdownItem(
        name=label,
        amount=floors * rule.fee_per_floor,
        note=f"{floor}階・エレベーターなし（{floors}階分 × {format_currency(rule.fee_per_floor)}）",
    )


def calculate_floor_fees(options: EstimateOptions, config: PricingConfig) -> FeeBundle:
    """Stair-carry fee; pickup and delivery never interact."""
    items = [
        line for line in (
            _floor_line(options.floor_pickup, options.has_elevator_pickup,
                        config.floor.pickup_label, config),
            _floor_line(options.floor_delivery, options.has_elevator_delivery,
                        config.floor.delivery_label, config),
        )
        if line is not None
    ]
    return FeeBundle(total_fee=sum(item.amount for item in items), items=tuple(items))


# ---------------------------------------------------------------------------
# 3. Option fees
# ---------------------------------------------------------------------------

def calculate_option_fees(options: EstimateOptions, config: PricingConfig) -> FeeBundle:
    """Apply each configured option whose condition holds (no condition → never applied)."""
    items: list[FeeBreakdownItem] = []
    for option in config.option_fees:
        if option.condition is None:
            continue
        if option.condition(options):
            items.append(FeeBreakdownItem(name=option.label, amount=option.fee))
    return FeeBundle(total_fee=sum(item.amount for item in items), items=tuple(items))


# ---------------------------------------------------------------------------
# 4. Highway fee
# ---------------------------------------------------------------------------

def process_highway_fee(distance: DistanceResult, config: PricingConfig) -> HighwayFeeResult:
    """
    Resolve the toll line.

    - Intra-prefecture with ``only_inter_prefecture``: no fee, no line.
    - Positive toll: charged, with an "estimate" note.
    - Toll unavailable (``None`` or 0) and ``treat_unavailable_as_zero``:
      informational 0-yen line plus a top-level note.
    - Otherwise: top-level note only.
    """
    policy = config.highway

    if not distance.is_inter_prefecture and policy.only_inter_prefecture:
        return HighwayFeeResult(fee=0)

    if distance.highway_fee is not None and distance.highway_fee > 0:
        fee = round_half_up(distance.highway_fee)
        return HighwayFeeResult(
            fee=fee,
            item=FeeBreakdownItem(name=policy.label, amount=fee, note=policy.estimate_note),
        )

    if policy.treat_unavailable_as_zero:
        return HighwayFeeResult(
            fee=0,
            item=FeeBreakdownItem(name=policy.label, amount=0, note=policy.unavailable_text),
            note=policy.unavailable_text,
        )

    return HighwayFeeResult(fee=0, note=policy.unavailable_text)


# ---------------------------------------------------------------------------
# 5. Storage fee
# ---------------------------------------------------------------------------

def calculate_storage_days(dates: Optional[MovingDates]) -> int:
    """Whole days between pickup and delivery; same day or missing dates → 0."""
    if dates is None:
        return 0
    pickup = parse_iso_date(dates.pickup_date)
    delivery = parse_iso_date(dates.delivery_date)
    if pickup is None or delivery is None:
        return 0
    return max(0, (delivery - pickup).days)


def calculate_storage_fee(dates: Optional[MovingDates], config: PricingConfig) -> StorageFeeResult:
    days = calculate_storage_days(dates)
    if days <= 0:
        return StorageFeeResult(fee=0, days=0)

    per_day = config.storage.per_day_fee
    fee = days * per_day
    return StorageFeeResult(
        fee=fee,
        days=days,
        item=FeeBreakdownItem(
            name=config.storage.label,
            amount=fee,
            note=f"{days}日 × {format_currency(per_day)}/日",
        ),
    )


# ---------------------------------------------------------------------------
# 6. Busy-season surcharge
# ---------------------------------------------------------------------------

def is_busy_season(value: Optional[str | date], config: PricingConfig) -> bool:
    """Whether the (year-independent) month/day falls inside the busy window."""
    target = value if isinstance(value, date) else parse_iso_date(value)
    if target is None:
        return False
    window = config.busy_season
    month_day = target.month * 100 + target.day
    return window.start_value <= month_day <= window.end_value


def calculate_busy_season_fee(
    base_fee: int,
    dates: Optional[MovingDates],
    config: PricingConfig,
) -> BusySeasonResult:
    """Surcharge on the base/distance fee, decided by the pickup date only."""
    pickup_date = dates.pickup_date if dates is not None else None
    if not is_busy_season(pickup_date, config):
        return BusySeasonResult(fee=0, is_busy=False)

    rate = config.busy_season.surcharge_rate
    surcharge = round_half_up(base_fee * rate)
    return BusySeasonResult(
        fee=surcharge,
        is_busy=True,
        item=FeeBreakdownItem(
            name=config.busy_season.label,
            amount=surcharge,
            note=f"({format_currency(base_fee)} × {format_rate_percent(rate)}%)",
        ),
    )
