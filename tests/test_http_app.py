# tests/test_http_app.py
"""HTTP API tests (FastAPI TestClient, repositories and providers mocked)."""
from __future__ import annotations

import datetime as dt
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from hikkoshi.core.pricing.models import DistanceResult
from hikkoshi.core.quote_service import QuoteService
from hikkoshi.core.wizard.store import InMemoryWizardStore
from hikkoshi.infra.distance import DistanceLookupError
from hikkoshi.infra.postal import PostalAddress, PostalResult
from hikkoshi.transport.http_app import app, build_liff_url, new_estimate_id


QUOTE_PAYLOAD = {
    "pickup_address": {"prefecture": "東京都", "city": "渋谷区", "town": "神南1丁目"},
    "delivery_address": {"prefecture": "東京都", "city": "新宿区", "town": "西新宿2丁目"},
    "dates": {"pickup_date": "2025-06-01", "delivery_date": "2025-06-01"},
    "options": {"floor_pickup": 1, "floor_delivery": 1, "needs_packing": False},
}


@pytest.fixture
def distance_provider():
    provider = MagicMock()
    provider.name = "stub"
    provider.get_distance = AsyncMock(
        return_value=DistanceResult(distance_km=50.0, highway_fee=None, is_inter_prefecture=False)
    )
    return provider


@pytest.fixture
def estimate_repo():
    repo = MagicMock()
    repo.insert_estimate = AsyncMock()
    repo.link_estimate = AsyncMock(return_value=True)
    repo.get_by_id = AsyncMock(return_value=None)
    repo.get_latest_by_line_user_id = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def client(distance_provider, estimate_repo):
    app.state.quote_service = QuoteService(distance_provider=distance_provider)
    app.state.estimate_repo = estimate_repo
    app.state.wizard_store = InMemoryWizardStore()
    return TestClient(app)


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "ok"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_security_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_unknown_route(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not found"}


class TestQuote:

    def test_quote(self, client, distance_provider):
        response = client.post("/api/quote", json=QUOTE_PAYLOAD)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["estimate"]["total_fee"] == 18600
        assert data["formatted"]["total"] == "¥18,600"
        assert data["formatted"]["distance"] == "50.0 km"
        assert data["formatted"]["breakdown"][0]["amount"] == "¥15,000"
        distance_provider.get_distance.assert_awaited_once()

    def test_quote_with_options(self, client, distance_provider):
        distance_provider.get_distance.return_value = DistanceResult(
            distance_km=500.0, highway_fee=12000, is_inter_prefecture=True
        )
        payload = dict(
            QUOTE_PAYLOAD,
            dates={"pickup_date": "2025-03-20", "delivery_date": "2025-03-22"},
            options={"floor_pickup": 3, "needs_packing": True},
        )

        estimate = client.post("/api/quote", json=payload).json()["estimate"]

        assert estimate["total_fee"] == 91980
        assert estimate["option_fee"] == 3000
        assert estimate["is_busy_season"] is True

    def test_distance_failure_is_502(self, client, distance_provider):
        distance_provider.get_distance.side_effect = DistanceLookupError("Routes API error 500")

        response = client.post("/api/quote", json=QUOTE_PAYLOAD)

        assert response.status_code == 502
        assert response.json()["success"] is False

    def test_invalid_prefecture_is_422(self, client):
        payload = dict(QUOTE_PAYLOAD, pickup_address={"prefecture": "東京", "city": "渋谷区", "town": "神南"})

        response = client.post("/api/quote", json=payload)

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_delivery_before_pickup_is_422(self, client):
        payload = dict(QUOTE_PAYLOAD, dates={"pickup_date": "2025-06-05", "delivery_date": "2025-06-01"})
        assert client.post("/api/quote", json=payload).status_code == 422


class TestPostal:

    def test_found(self, client):
        result = PostalResult(
            success=True,
            address=PostalAddress("東京都", "千代田区", "千代田", "東京都千代田区千代田"),
        )
        with patch("hikkoshi.transport.http_app.lookup_postal_code", new=AsyncMock(return_value=result)):
            response = client.get("/api/postal/100-0001")

        assert response.status_code == 200
        assert response.json()["address"]["fullAddress"] == "東京都千代田区千代田"

    def test_invalid(self, client):
        result = PostalResult(success=False, error="郵便番号は7桁の数字で入力してください")
        with patch("hikkoshi.transport.http_app.lookup_postal_code", new=AsyncMock(return_value=result)):
            response = client.get("/api/postal/123")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "郵便番号は7桁の数字で入力してください"}


class TestWizardSteps:

    def test_roundtrip_and_clear(self, client):
        assert client.put("/api/wizard/s1/dates", json={"pickup_date": "2025-06-01"}).status_code == 200

        steps = client.get("/api/wizard/s1").json()["steps"]
        assert steps["dates"] == {"pickup_date": "2025-06-01"}
        assert steps["step1"] is None

        client.delete("/api/wizard/s1")
        assert client.get("/api/wizard/s1").json()["steps"]["dates"] is None

    def test_unknown_key(self, client):
        assert client.put("/api/wizard/s1/step9", json={}).status_code == 422


class TestEstimates:

    def test_create(self, client, estimate_repo):
        payload = {
            "pickupAddress": {"prefecture": "東京都", "city": "渋谷区", "town": "神南1丁目"},
            "deliveryAddress": {"prefecture": "大阪府", "city": "大阪市北区", "town": "梅田1丁目"},
            "dates": {"pickupDate": "2025-06-01", "deliveryDate": "2025-06-03"},
            "totalFee": 56000,
            "distanceKm": 500.0,
        }
        with patch("hikkoshi.transport.http_app.settings") as mock_settings:
            mock_settings.liff_id = "1234-abcd"
            mock_settings.is_production = False
            response = client.post("/api/estimates", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert len(data["estimateId"]) == 12
        assert data["liffUrl"] == f"https://liff.line.me/1234-abcd?estimateId={data['estimateId']}"

        estimate_id, row = estimate_repo.insert_estimate.call_args.args
        assert estimate_id == data["estimateId"]
        assert row["pickup_prefecture"] == "東京都"
        assert row["delivery_town"] == "梅田1丁目"
        assert row["pickup_date"] == "2025-06-01"
        assert row["total_fee"] == 56000

    def test_create_empty_body_uses_defaults(self, client, estimate_repo):
        response = client.post("/api/estimates", json={})

        assert response.status_code == 200
        row = estimate_repo.insert_estimate.call_args.args[1]
        assert row["pickup_prefecture"] == ""
        assert row["total_fee"] == 0
        assert row["distance_km"] == 0

    def test_create_store_failure(self, client, estimate_repo):
        estimate_repo.insert_estimate.side_effect = ConnectionError("db down")

        response = client.post("/api/estimates", json={})

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_link(self, client, estimate_repo):
        response = client.post("/api/link", json={"estimateId": "abc", "lineUserId": "U1"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Linked successfully"}
        estimate_repo.link_estimate.assert_awaited_once_with("abc", "U1")

    @pytest.mark.parametrize("payload", [{}, {"estimateId": "abc"}, {"lineUserId": "U1"}])
    def test_link_missing_fields(self, client, payload):
        response = client.post("/api/link", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "estimateId and lineUserId are required"

    def test_link_unknown(self, client, estimate_repo):
        estimate_repo.link_estimate.return_value = False

        response = client.post("/api/link", json={"estimateId": "nope", "lineUserId": "U1"})

        assert response.status_code == 404
        assert response.json()["error"] == "Estimate not found"

    def test_get(self, client, estimate_repo, sample_estimate_row):
        row = dict(sample_estimate_row, created_at=dt.datetime(2025, 6, 1, 12, 0, tzinfo=dt.timezone.utc))
        estimate_repo.get_by_id.return_value = row

        response = client.get("/api/estimates/abcDEF123456")

        assert response.status_code == 200
        estimate = response.json()["estimate"]
        assert estimate["total_fee"] == 56000
        assert estimate["created_at"].startswith("2025-06-01T12:00:00")

    def test_get_unknown(self, client):
        response = client.get("/api/estimates/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Estimate not found"}


class TestHelpers:

    def test_estimate_id_shape(self):
        ids = {new_estimate_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(len(i) == 12 for i in ids)

    def test_friend_add_fallback(self):
        with patch("hikkoshi.transport.http_app.settings") as mock_settings:
            mock_settings.liff_id = None
            mock_settings.line_official_account_id = "@hikkoshi"
            assert build_liff_url("abc") == "https://line.me/R/ti/p/@hikkoshi?estimateId=abc"


class TestMetrics:

    def test_enabled(self, client):
        client.post("/api/quote", json=QUOTE_PAYLOAD)
        response = client.get("/metrics")

        assert response.status_code == 200
        assert any("estimates_calculated_total" in key for key in response.json()["counters"])
