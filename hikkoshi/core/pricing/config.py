# hikkoshi/core/pricing/config.py
"""
Pricing configuration for the estimate engine.

All tunable values live in ``data/pricing_config.json``. The JSON is
loaded once at import time into an immutable ``PricingConfig``
(``DEFAULT_PRICING_CONFIG``). Alternate tables are built with
``load_pricing_config(path)`` or ``pricing_config_from_dict(raw)`` and
passed explicitly to ``calculate_estimate``.

Base-fee modes:
- ``none``       : no base fee (options and tolls only)
- ``fixed``      : flat base fee
- ``per_km``     : distance × per-km rate
- ``progressive``: flat fee up to N km, then per-km rates by distance band
  (the packaged default)

Option fee conditions cannot live in JSON, so each entry names a
predicate from ``OPTION_CONDITIONS``. ``null`` means the option is
listed but never applied automatically. Stair carrying is priced only
by the ``floor`` section, so no option predicate looks at floors.

All amounts are integer **JPY**.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from hikkoshi.core.pricing.models import EstimateOptions

__all__ = [
    "PricingConfigError",
    "BASE_FEE_MODES", "OPTION_CONDITIONS",
    "OptionFeeConfig", "DistanceBand", "ProgressiveFeeConfig",
    "FloorFeeConfig", "HighwayFeeConfig", "StorageFeeConfig",
    "BusySeasonConfig", "PricingConfig",
    "parse_month_day", "pricing_config_from_dict", "load_pricing_config",
    "DEFAULT_PRICING_CONFIG",
    # Used by tests:
    "_CONFIG_PATH",
]


class PricingConfigError(ValueError):
    """Pricing table is inconsistent (negative rate, unsorted bands, ...)."""


BASE_FEE_MODES = ("none", "fixed", "per_km", "progressive")

OptionCondition = Callable[[EstimateOptions], bool]


# ---------------------------------------------------------------------------
# Option conditions (referenced by name from JSON)
# ---------------------------------------------------------------------------

OPTION_CONDITIONS: dict[str, OptionCondition] = {
    "needs_packing": lambda o: o.needs_packing is True,
    "has_piano": lambda o: o.has_piano is True,
    "has_aircon": lambda o: o.has_aircon is True,
    "has_furniture_assembly": lambda o: o.has_furniture_assembly is True,
}


def _require_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise PricingConfigError(f"{name} must be >= 0, got {value!r}")


def parse_month_day(value: str) -> int:
    """
    Encode ``"MM-DD"`` as ``month * 100 + day`` (``"03-01"`` → ``301``).

    The day must exist in a leap year, so ``"02-29"`` is accepted and
    ``"02-31"`` is not.
    """
    try:
        month_text, day_text = value.split("-")
        month, day = int(month_text), int(day_text)
        date(2000, month, day)
    except (AttributeError, ValueError):
        raise PricingConfigError(f"Invalid month-day {value!r}, expected 'MM-DD'") from None
    return month * 100 + day


# ---------------------------------------------------------------------------
# Config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OptionFeeConfig:
    id: str
    label: str
    fee: int
    condition: Optional[OptionCondition] = None

    def __post_init__(self) -> None:
        _require_non_negative(f"option_fees[{self.id}].fee", self.fee)


@dataclass(frozen=True)
class DistanceBand:
    """Per-km rate for distance in ``(min_km, max_km]``; ``max_km=None`` is open-ended."""
    min_km: float
    max_km: Optional[float]
    rate_per_km: float

    def __post_init__(self) -> None:
        _require_non_negative("band.min_km", self.min_km)
        _require_non_negative("band.rate_per_km", self.rate_per_km)
        if self.max_km is not None and self.max_km <= self.min_km:
            raise PricingConfigError(
                f"Band max_km ({self.max_km}) must be greater than min_km ({self.min_km})"
            )

    def marginal_km(self, distance_km: float) -> float:
        """Portion of ``distance_km`` that falls inside this band."""
        upper = distance_km if self.max_km is None else min(distance_km, self.max_km)
        return max(0.0, upper - self.min_km)


@dataclass(frozen=True)
class ProgressiveFeeConfig:
    base_distance_km: float = 20
    base_fee: int = 15000
    bands: tuple[DistanceBand, ...] = ()
    base_label: str = "基本料金（20kmまで）"
    band_label: str = "距離料金"

    def __post_init__(self) -> None:
        _require_non_negative("progressive.base_distance_km", self.base_distance_km)
        _require_non_negative("progressive.base_fee", self.base_fee)

        previous_max = self.base_distance_km
        for index, band in enumerate(self.bands):
            if band.min_km < previous_max:
                raise PricingConfigError(
                    f"Distance bands must be ascending and non-overlapping: "
                    f"band {index} starts at {band.min_km}km, previous ends at {previous_max}km"
                )
            if band.max_km is None and index != len(self.bands) - 1:
                raise PricingConfigError("Only the last distance band may be open-ended")
            previous_max = band.max_km if band.max_km is not None else band.min_km


@dataclass(frozen=True)
class FloorFeeConfig:
    free_until_floor: int = 1
    fee_per_floor: int = 1000
    pickup_label: str = "集荷先 階段作業"
    delivery_label: str = "お届け先 階段作業"

    def __post_init__(self) -> None:
        _require_non_negative("floor.free_until_floor", self.free_until_floor)
        _require_non_negative("floor.fee_per_floor", self.fee_per_floor)


@dataclass(frozen=True)
class HighwayFeeConfig:
    only_inter_prefecture: bool = True
    treat_unavailable_as_zero: bool = True
    label: str = "高速道路料金"
    estimate_note: str = "ETC料金（概算）"
    unavailable_text: str = "取得不可（別途）"


@dataclass(frozen=True)
class StorageFeeConfig:
    per_day_fee: int = 3000
    label: str = "積み置き料金"

    def __post_init__(self) -> None:
        _require_non_negative("storage.per_day_fee", self.per_day_fee)


@dataclass(frozen=True)
class BusySeasonConfig:
    """Year-independent window, inclusive on both ends."""
    start: str = "03-01"
    end: str = "04-10"
    surcharge_rate: float = 0.3
    label: str = "繁忙期料金（3割増し）"

    def __post_init__(self) -> None:
        _require_non_negative("busy_season.surcharge_rate", self.surcharge_rate)
        if parse_month_day(self.start) > parse_month_day(self.end):
            raise PricingConfigError(
                f"Busy season window must not wrap the year end: {self.start}..{self.end}"
            )

    @property
    def start_value(self) -> int:
        return parse_month_day(self.start)

    @property
    def end_value(self) -> int:
        return parse_month_day(self.end)


@dataclass(frozen=True)
class PricingConfig:
    """Complete pricing table. Read-only; the engine never mutates it."""
    base_fee_mode: str = "progressive"
    fixed_base_fee: int = 10000
    per_km_rate: float = 100
    fixed_label: str = "基本料金"
    per_km_label: str = "距離料金"
    progressive: ProgressiveFeeConfig = field(default_factory=ProgressiveFeeConfig)
    floor: FloorFeeConfig = field(default_factory=FloorFeeConfig)
    option_fees: tuple[OptionFeeConfig, ...] = ()
    highway: HighwayFeeConfig = field(default_factory=HighwayFeeConfig)
    storage: StorageFeeConfig = field(default_factory=StorageFeeConfig)
    busy_season: BusySeasonConfig = field(default_factory=BusySeasonConfig)

    def __post_init__(self) -> None:
        # Unknown modes are tolerated here; the base-fee calculator prices them at 0.
        _require_non_negative("fixed_base_fee", self.fixed_base_fee)
        _require_non_negative("per_km_rate", self.per_km_rate)

        seen: set[str] = set()
        for option in self.option_fees:
            if option.id in seen:
                raise PricingConfigError(f"Duplicate option fee id {option.id!r}")
            seen.add(option.id)


# ---------------------------------------------------------------------------
# JSON loading
# ---------------------------------------------------------------------------

_CONFIG_PATH = Path(__file__).parent / "data" / "pricing_config.json"


def _build_option_fees(raw_options: list[dict]) -> tuple[OptionFeeConfig, ...]:
    options: list[OptionFeeConfig] = []
    for raw in raw_options:
        condition_name = raw.get("condition")
        condition: Optional[OptionCondition] = None
        if condition_name is not None:
            if condition_name not in OPTION_CONDITIONS:
                raise PricingConfigError(
                    f"Unknown condition {condition_name!r} for option {raw.get('id')!r}"
                )
            condition = OPTION_CONDITIONS[condition_name]
        options.append(OptionFeeConfig(
            id=raw["id"],
            label=raw["label"],
            fee=int(raw["fee"]),
            condition=condition,
        ))
    return tuple(options)


def pricing_config_from_dict(raw: dict) -> PricingConfig:
    """Build a ``PricingConfig`` from the JSON structure (missing sections use defaults)."""
    try:
        base = raw.get("base_fee", {})
        prog = raw.get("progressive", {})
        floor = raw.get("floor", {})
        highway = raw.get("highway", {})
        storage = raw.get("storage", {})
        busy = raw.get("busy_season", {})

        progressive = ProgressiveFeeConfig(
            base_distance_km=prog.get("base_distance_km", 20),
            base_fee=int(prog.get("base_fee", 15000)),
            bands=tuple(
                DistanceBand(
                    min_km=band["min_km"],
                    max_km=band.get("max_km"),
                    rate_per_km=band["rate_per_km"],
                )
                for band in prog.get("bands", [])
            ),
            base_label=prog.get("base_label", "基本料金（20kmまで）"),
            band_label=prog.get("band_label", "距離料金"),
        )

        return PricingConfig(
            base_fee_mode=base.get("mode", "progressive"),
            fixed_base_fee=int(base.get("fixed_fee", 10000)),
            per_km_rate=base.get("per_km_rate", 100),
            fixed_label=base.get("fixed_label", "基本料金"),
            per_km_label=base.get("per_km_label", "距離料金"),
            progressive=progressive,
            floor=FloorFeeConfig(
                free_until_floor=int(floor.get("free_until_floor", 1)),
                fee_per_floor=int(floor.get("fee_per_floor", 1000)),
                pickup_label=floor.get("pickup_label", "集荷先 階段作業"),
                delivery_label=floor.get("delivery_label", "お届け先 階段作業"),
            ),
            option_fees=_build_option_fees(raw.get("option_fees", [])),
            highway=HighwayFeeConfig(
                only_inter_prefecture=bool(highway.get("only_inter_prefecture", True)),
                treat_unavailable_as_zero=bool(highway.get("treat_unavailable_as_zero", True)),
                label=highway.get("label", "高速道路料金"),
                estimate_note=highway.get("estimate_note", "ETC料金（概算）"),
                unavailable_text=highway.get("unavailable_text", "取得不可（別途）"),
            ),
            storage=StorageFeeConfig(
                per_day_fee=int(storage.get("per_day_fee", 3000)),
                label=storage.get("label", "積み置き料金"),
            ),
            busy_season=BusySeasonConfig(
                start=busy.get("start", "03-01"),
                end=busy.get("end", "04-10"),
                surcharge_rate=busy.get("surcharge_rate", 0.3),
                label=busy.get("label", "繁忙期料金（3割増し）"),
            ),
        )
    except (KeyError, TypeError) as exc:
        raise PricingConfigError(f"Malformed pricing config: {exc!r}") from exc


def load_pricing_config(path: Path | str | None = None) -> PricingConfig:
    """Load a pricing table from JSON (defaults to the packaged table)."""
    config_path = Path(path) if path is not None else _CONFIG_PATH
    with open(config_path, "r", encoding="utf-8") as f:
        return pricing_config_from_dict(json.load(f))


DEFAULT_PRICING_CONFIG: PricingConfig = load_pricing_config()
