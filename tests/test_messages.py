# tests/test_messages.py
"""Tests for the LINE follow-event reply text."""
from __future__ import annotations

import pytest

from hikkoshi.core.messages import (
    WELCOME_WITHOUT_ESTIMATE,
    build_follow_message,
    format_total_fee,
)


class TestFormatTotalFee:

    @pytest.mark.parametrize("value,expected", [
        (56000, "56,000"),
        (1234567, "1,234,567"),
        ("56000", "56,000"),
        (0, "0"),
        (None, "0"),
        ("", "0"),
        ("要相談", "要相談"),
    ])
    def test_values(self, value, expected):
        assert format_total_fee(value) == expected


class TestBuildFollowMessage:

    def test_without_estimate(self):
        assert build_follow_message(None) == WELCOME_WITHOUT_ESTIMATE

    def test_with_estimate(self, sample_estimate_row):
        text = build_follow_message(sample_estimate_row)

        assert text.startswith("友だち追加ありがとうございます！")
        assert "【集荷先】\n東京都渋谷区神南1丁目" in text
        assert "【お届け先】\n大阪府大阪市北区梅田1丁目" in text
        assert "【お見積もり金額】\n¥56,000" in text

    def test_missing_address_parts(self):
        text = build_follow_message({
            "pickup_prefecture": "東京都",
            "pickup_city": None,
            "delivery_prefecture": "大阪府",
            "total_fee": 30000,
        })

        assert "【集荷先】\n東京都\n" in text
        assert "【お届け先】\n大阪府\n" in text

    def test_non_numeric_total_rendered_verbatim(self, sample_estimate_row):
        row = dict(sample_estimate_row, total_fee="お見積もり中")
        assert "¥お見積もり中" in build_follow_message(row)
