# tests/test_postal.py
"""
Tests for the zipcloud postal code lookup.

All tests mock the HTTP layer; no actual zipcloud calls.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from hikkoshi.infra.postal import (
    ERROR_INVALID_FORMAT,
    ERROR_LOOKUP_FAILED,
    ERROR_NOT_FOUND,
    ERROR_UNEXPECTED,
    format_postal_code,
    is_valid_postal_code,
    lookup_postal_code,
    to_half_width,
)


def _make_mock_response(status=200, json_data=None):
    """Create a mock aiohttp response."""
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data or {})
    return resp


def _make_mock_session(response):
    """Create a mock session whose .get() returns the given response."""
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=ctx)
    return session


ZIPCLOUD_OK = {
    "status": 200,
    "message": None,
    "results": [
        {
            "address1": "東京都",
            "address2": "千代田区",
            "address3": "千代田",
            "zipcode": "1000001",
        }
    ],
}


class TestPostalCodeFormatting:

    def test_to_half_width(self):
        assert to_half_width("１２３４５６７") == "1234567"

    @pytest.mark.parametrize("raw,expected", [
        ("100-0001", "1000001"),
        ("100－0001", "1000001"),
        ("100ー0001", "1000001"),
        (" 100 0001 ", "1000001"),
        ("１００-０００１", "1000001"),
    ])
    def test_format(self, raw, expected):
        assert format_postal_code(raw) == expected

    @pytest.mark.parametrize("code,valid", [
        ("1000001", True),
        ("100-0001", True),
        ("１００－０００１", True),
        ("100001", False),
        ("10000011", False),
        ("abcdefg", False),
        ("", False),
    ])
    def test_validation(self, code, valid):
        assert is_valid_postal_code(code) is valid


class TestLookupPostalCode:

    @pytest.mark.asyncio
    async def test_success(self):
        session = _make_mock_session(_make_mock_response(200, ZIPCLOUD_OK))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("100-0001")

        assert result.success is True
        assert result.address.prefecture == "東京都"
        assert result.address.city == "千代田区"
        assert result.address.address == "千代田"
        assert result.address.full_address == "東京都千代田区千代田"
        assert session.get.call_args.kwargs["params"] == {"zipcode": "1000001"}

    @pytest.mark.asyncio
    async def test_invalid_format_skips_request(self):
        session = _make_mock_session(_make_mock_response(200, ZIPCLOUD_OK))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("12345")

        assert result.success is False
        assert result.error == ERROR_INVALID_FORMAT
        session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found(self):
        body = {"status": 200, "message": None, "results": None}
        session = _make_mock_session(_make_mock_response(200, body))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("9999999")

        assert result.success is False
        assert result.error == ERROR_NOT_FOUND

    @pytest.mark.asyncio
    async def test_api_error_message_passed_through(self):
        body = {"status": 400, "message": "必須パラメータが指定されていません。", "results": None}
        session = _make_mock_session(_make_mock_response(200, body))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("1000001")

        assert result.error == "必須パラメータが指定されていません。"

    @pytest.mark.asyncio
    async def test_api_error_without_message(self):
        session = _make_mock_session(_make_mock_response(200, {"status": 500}))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("1000001")

        assert result.error == ERROR_LOOKUP_FAILED

    @pytest.mark.asyncio
    async def test_http_error(self):
        session = _make_mock_session(_make_mock_response(503))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("1000001")

        assert result.success is False
        assert result.error == ERROR_UNEXPECTED

    @pytest.mark.asyncio
    async def test_network_error_never_raises(self):
        session = MagicMock()
        session.get = MagicMock(side_effect=aiohttp.ClientError("boom"))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("1000001")

        assert result.success is False
        assert result.error == ERROR_UNEXPECTED

    @pytest.mark.asyncio
    async def test_timeout_never_raises(self):
        session = MagicMock()
        session.get = MagicMock(side_effect=TimeoutError())

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            result = await lookup_postal_code("1000001")

        assert result.error == ERROR_UNEXPECTED

    @pytest.mark.asyncio
    async def test_to_dict(self):
        session = _make_mock_session(_make_mock_response(200, ZIPCLOUD_OK))

        with patch("hikkoshi.infra.postal.get_lookup_session", return_value=session):
            data = (await lookup_postal_code("1000001")).to_dict()

        assert data == {
            "success": True,
            "address": {
                "prefecture": "東京都",
                "city": "千代田区",
                "address": "千代田",
                "fullAddress": "東京都千代田区千代田",
            },
        }
