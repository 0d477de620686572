# hikkoshi/core/messages.py
"""LINE reply texts for the follow event."""
from __future__ import annotations

import math
from typing import Any, Mapping

WELCOME_WITH_ESTIMATE = (
    "友だち追加ありがとうございます！\n\n"
    "お見積もり内容を確認しました。\n\n"
    "【集荷先】\n{pickup}\n\n"
    "【お届け先】\n{delivery}\n\n"
    "【お見積もり金額】\n¥{total}\n\n"
    "ご不明な点がございましたら、お気軽にメッセージをお送りください。"
)

WELCOME_WITHOUT_ESTIMATE = (
    "友だち追加ありがとうございます！\n\n"
    "引越しのお見積もりや、ご質問がございましたら、お気軽にメッセージをお送りください。"
)


def _joined_address(row: Mapping[str, Any], side: str) -> str:
    return "".join(
        str(row.get(f"{side}_{part}") or "")
        for part in ("prefecture", "city", "town")
    )


def format_total_fee(value: Any) -> str:
    """Thousands-separated total; values that are not finite numbers are shown as-is."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value or "0")
    if not math.isfinite(number):
        return str(value or "0")
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,}"


def build_follow_message(estimate: Mapping[str, Any] | None) -> str:
    """Summary of the user's latest estimate, or a plain welcome when there is none."""
    if not estimate:
        return WELCOME_WITHOUT_ESTIMATE

    return WELCOME_WITH_ESTIMATE.format(
        pickup=_joined_address(estimate, "pickup"),
        delivery=_joined_address(estimate, "delivery"),
        total=format_total_fee(estimate.get("total_fee")),
    )
