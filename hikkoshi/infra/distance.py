# hikkoshi/infra/distance.py
"""
Driving distance and toll lookup.

Two providers implement ``DistanceProvider``:

- ``GoogleRoutesDistanceProvider`` calls the Google Maps Routes API
  (``computeRoutes`` with the TOLLS extra computation) through the shared
  aiohttp session, retrying on 429 / 5xx / network errors.
- ``MockDistanceProvider`` simulates distances for development
  (~300 km between prefectures, ~50 km inside one, ±20%).

The pricing engine treats the result as a black box: it only sees a
``DistanceResult``.
"""
from __future__ import annotations

import asyncio
import random
from typing import Any, Optional

import aiohttp

from hikkoshi.core.ports import DistanceProvider
from hikkoshi.core.pricing.models import Address, DistanceResult
from hikkoshi.infra.http_client import get_lookup_session
from hikkoshi.infra.logging_config import get_logger
from hikkoshi.infra.metrics import AppMetrics

logger = get_logger(__name__)

ROUTES_API_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
ROUTES_FIELD_MASK = "routes.distanceMeters,routes.travelAdvisory.tollInfo"

MOCK_INTER_PREFECTURE_KM = 300
MOCK_INTRA_PREFECTURE_KM = 50
MOCK_TOLL_YEN_PER_KM = 25


class DistanceLookupError(Exception):
    """Distance could not be determined (API failure, no route)."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


def _is_inter_prefecture(origin: Address, destination: Address) -> bool:
    return origin.prefecture != destination.prefecture


def _parse_toll_yen(route: dict[str, Any]) -> Optional[int]:
    """
    Extract the JPY toll from ``travelAdvisory.tollInfo.estimatedPrice``.

    Returns None when the API reports no toll information.
    """
    toll_info = (route.get("travelAdvisory") or {}).get("tollInfo")
    if not toll_info:
        return None

    for price in toll_info.get("estimatedPrice") or []:
        if price.get("currencyCode") != "JPY":
            continue
        units = int(price.get("units") or 0)
        nanos = int(price.get("nanos") or 0)
        return int(round(units + nanos / 1_000_000_000))

    return None


def parse_routes_response(
    data: dict[str, Any],
    origin: Address,
    destination: Address,
) -> DistanceResult:
    """Convert a computeRoutes response body into a DistanceResult."""
    routes = data.get("routes") or []
    if not routes:
        raise DistanceLookupError("No route found between the addresses")

    route = routes[0]
    meters = route.get("distanceMeters")
    if meters is None:
        raise DistanceLookupError("Distance not found in response")

    return DistanceResult(
        distance_km=float(meters) / 1000,
        highway_fee=_parse_toll_yen(route),
        is_inter_prefecture=_is_inter_prefecture(origin, destination),
    )


class GoogleRoutesDistanceProvider(DistanceProvider):
    """Google Maps Routes API provider."""

    name = "google"

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        timeout_seconds: float = 10.0,
        initial_delay: float = 0.5,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.initial_delay = initial_delay

    def _build_body(self, origin: Address, destination: Address) -> dict[str, Any]:
        return {
            "origin": {"address": origin.full_text()},
            "destination": {"address": destination.full_text()},
            "travelMode": "DRIVE",
            "extraComputations": ["TOLLS"],
            "routeModifiers": {"tollPasses": ["JP_ETC"]},
            "languageCode": "ja-JP",
            "regionCode": "JP",
        }

    async def _request(self, body: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": ROUTES_FIELD_MASK,
        }
        session = get_lookup_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with session.post(
                ROUTES_API_URL, json=body, headers=headers, timeout=timeout
            ) as resp:
                if resp.status == 200:
                    return await resp.json(content_type=None)

                text = await resp.text()
                retryable = resp.status == 429 or resp.status >= 500
                raise DistanceLookupError(
                    f"Routes API error {resp.status}: {text[:200]}",
                    retryable=retryable,
                )

        except (TimeoutError, asyncio.TimeoutError):
            raise DistanceLookupError("Routes API timeout", retryable=True)

        except aiohttp.ClientError as exc:
            raise DistanceLookupError(f"Routes API network error: {exc}", retryable=True)

    async def get_distance(self, origin: Address, destination: Address) -> DistanceResult:
        body = self._build_body(origin, destination)
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                with AppMetrics.track_distance_lookup(self.name):
                    data = await self._request(body)
                result = parse_routes_response(data, origin, destination)
                logger.info(
                    "Route %s → %s: %.1f km, toll=%s",
                    origin.prefecture, destination.prefecture,
                    result.distance_km, result.highway_fee,
                )
                return result

            except DistanceLookupError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    AppMetrics.distance_lookup_failed(self.name)
                    logger.error(f"Distance lookup failed: {exc.message}")
                    raise

                logger.warning(
                    f"Distance lookup attempt {attempt + 1}/{self.max_retries} failed: "
                    f"{exc.message}. Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)
                delay *= 2

        raise DistanceLookupError("Distance lookup failed")


class MockDistanceProvider(DistanceProvider):
    """Simulated distances for development and tests."""

    name = "mock"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def get_distance(self, origin: Address, destination: Address) -> DistanceResult:
        inter = _is_inter_prefecture(origin, destination)
        base = MOCK_INTER_PREFECTURE_KM if inter else MOCK_INTRA_PREFECTURE_KM
        factor = 0.8 + self.rng.random() * 0.4
        distance_km = round(base * factor, 1)

        return DistanceResult(
            distance_km=distance_km,
            highway_fee=round(distance_km * MOCK_TOLL_YEN_PER_KM) if inter else None,
            is_inter_prefecture=inter,
        )


def get_distance_provider(settings) -> DistanceProvider:
    """Pick the provider from settings; Google without an API key falls back to the mock."""
    if settings.distance_provider == "google":
        if settings.google_maps_api_key:
            return GoogleRoutesDistanceProvider(
                api_key=settings.google_maps_api_key,
                max_retries=settings.distance_max_retries,
                timeout_seconds=settings.distance_timeout_seconds,
            )
        logger.warning("Google Maps API key not set, using mock distance provider")

    return MockDistanceProvider()
