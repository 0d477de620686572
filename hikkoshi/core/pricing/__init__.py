# hikkoshi/core/pricing/__init__.py
"""
Moving estimate pricing engine.

Sub-modules:
    models      : input / output dataclasses, EstimateInputError
    config      : PricingConfig, JSON loader, DEFAULT_PRICING_CONFIG
    calculators : the six fee calculators
    engine      : calculate_estimate()
    formatting  : yen / km display helpers, half-up rounding
    data/       : pricing_config.json
"""
from hikkoshi.core.pricing.config import DEFAULT_PRICING_CONFIG, PricingConfig, PricingConfigError
from hikkoshi.core.pricing.engine import calculate_estimate
from hikkoshi.core.pricing.formatting import format_currency, format_distance
from hikkoshi.core.pricing.models import (
    Address,
    DistanceResult,
    EstimateInputError,
    EstimateOptions,
    EstimateResult,
    FeeBreakdownItem,
    MovingDates,
)

__all__ = [
    "calculate_estimate",
    "format_currency", "format_distance",
    "PricingConfig", "PricingConfigError", "DEFAULT_PRICING_CONFIG",
    "Address", "DistanceResult", "EstimateInputError", "EstimateOptions",
    "EstimateResult", "FeeBreakdownItem", "MovingDates",
]
