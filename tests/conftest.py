# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from hikkoshi.core.pricing.config import DEFAULT_PRICING_CONFIG, PricingConfig  # noqa: E402
from hikkoshi.core.pricing.models import (  # noqa: E402
    Address,
    DistanceResult,
    EstimateOptions,
    MovingDates,
)


@pytest.fixture
def pricing_config() -> PricingConfig:
    """Packaged pricing table with the per_km base mode: 100円/km, floor 1000円, packing 1000円"""
    return replace(DEFAULT_PRICING_CONFIG, base_fee_mode="per_km")


@pytest.fixture
def default_pricing_config() -> PricingConfig:
    """Packaged pricing table as shipped (progressive bands)"""
    return DEFAULT_PRICING_CONFIG


@pytest.fixture
def tokyo_address():
    return Address(prefecture="東京都", city="渋谷区", town="神南1丁目")


@pytest.fixture
def osaka_address():
    return Address(prefecture="大阪府", city="大阪市北区", town="梅田1丁目")


@pytest.fixture
def intra_distance():
    """50 km inside one prefecture"""
    return DistanceResult(distance_km=50.0, highway_fee=None, is_inter_prefecture=False)


@pytest.fixture
def inter_distance():
    """500 km between prefectures with a known toll"""
    return DistanceResult(distance_km=500.0, highway_fee=12000, is_inter_prefecture=True)


@pytest.fixture
def no_options():
    return EstimateOptions()


@pytest.fixture
def off_season_dates():
    return MovingDates(pickup_date="2025-06-01", delivery_date="2025-06-01")


@pytest.fixture
def line_user_id():
    return "U4af4980629abcdef0123456789abcdef"


@pytest.fixture
def sample_estimate_row(line_user_id):
    """Row as returned by the estimate store"""
    return {
        "id": "abcDEF123456",
        "pickup_prefecture": "東京都",
        "pickup_city": "渋谷区",
        "pickup_town": "神南1丁目",
        "delivery_prefecture": "大阪府",
        "delivery_city": "大阪市北区",
        "delivery_town": "梅田1丁目",
        "pickup_date": "2025-06-01",
        "delivery_date": "2025-06-03",
        "total_fee": 56000,
        "distance_km": 500.0,
        "line_user_id": line_user_id,
    }
