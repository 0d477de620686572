# hikkoshi/core/quote_service.py
"""
Quote use case: distance lookup → pricing engine → display strings.

The engine stays pure; this layer owns the async distance call, the
logging and the metrics around one quote.
"""
from __future__ import annotations

from typing import Any

from hikkoshi.core.ports import DistanceProvider
from hikkoshi.core.pricing import (
    DEFAULT_PRICING_CONFIG,
    PricingConfig,
    calculate_estimate,
    format_currency,
    format_distance,
)
from hikkoshi.core.pricing.models import EstimateResult
from hikkoshi.core.wizard.forms import QuoteRequest
from hikkoshi.infra.logging_config import get_logger
from hikkoshi.infra.metrics import AppMetrics

logger = get_logger(__name__)


def format_estimate(result: EstimateResult) -> dict[str, Any]:
    """Display strings for the result screen."""
    return {
        "distance": format_distance(result.distance_km),
        "total": format_currency(result.total_fee),
        "breakdown": [
            {
                "name": item.name,
                "amount": format_currency(item.amount),
                "note": item.note,
            }
            for item in result.breakdown
        ],
        "highwayFeeNote": result.highway_fee_note,
    }


class QuoteService:
    def __init__(
        self,
        *,
        distance_provider: DistanceProvider,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
    ) -> None:
        self.distance_provider = distance_provider
        self.config = config

    async def quote(self, request: QuoteRequest) -> EstimateResult:
        """
        Raises:
            DistanceLookupError: the provider could not route the addresses
            EstimateInputError: the provider returned an unusable distance
        """
        origin = request.pickup_address.to_domain()
        destination = request.delivery_address.to_domain()

        distance = await self.distance_provider.get_distance(origin, destination)

        result = calculate_estimate(
            distance,
            request.options.to_domain(),
            request.dates.to_domain(),
            self.config,
        )

        AppMetrics.estimate_calculated(self.config.base_fee_mode, result.is_busy_season)
        logger.info(
            f"Quote: {origin.prefecture} → {destination.prefecture}, "
            f"{result.distance_km:.1f} km, total={result.total_fee}, "
            f"provider={self.distance_provider.name}"
        )
        return result
