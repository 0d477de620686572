# hikkoshi/infra/postal.py
"""
Postal code → address lookup via zipcloud.

https://zipcloud.ibsnet.co.jp/doc/api

``lookup_postal_code(code)`` never raises: every failure is returned as
``PostalResult(success=False, error=<Japanese message>)`` so the wizard
can show it next to the input field.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import aiohttp

from hikkoshi.config import settings
from hikkoshi.infra.http_client import get_lookup_session
from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)

ERROR_INVALID_FORMAT = "郵便番号は7桁の数字で入力してください"
ERROR_LOOKUP_FAILED = "住所の取得に失敗しました"
ERROR_NOT_FOUND = "該当する住所が見つかりませんでした"
ERROR_UNEXPECTED = "住所の取得中にエラーが発生しました"

# Full-width digits / hyphen variants users type on Japanese keyboards
_HALF_WIDTH = str.maketrans("０１２３４５６７８９", "0123456789")
_SEPARATORS = re.compile(r"[-－ー‐−\s]")
_POSTAL_RE = re.compile(r"^\d{7}$")


@dataclass(frozen=True)
class PostalAddress:
    prefecture: str
    city: str
    address: str
    full_address: str


@dataclass(frozen=True)
class PostalResult:
    success: bool
    address: Optional[PostalAddress] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"success": self.success}
        if self.address is not None:
            data["address"] = {
                "prefecture": self.address.prefecture,
                "city": self.address.city,
                "address": self.address.address,
                "fullAddress": self.address.full_address,
            }
        if self.error is not None:
            data["error"] = self.error
        return data


def to_half_width(value: str) -> str:
    return value.translate(_HALF_WIDTH)


def format_postal_code(code: str) -> str:
    """Strip hyphens and whitespace, normalize full-width digits: ``"１２３-４５６７"`` → ``"1234567"``."""
    return _SEPARATORS.sub("", to_half_width(code))


def is_valid_postal_code(code: str) -> bool:
    return bool(_POSTAL_RE.match(format_postal_code(code)))


def _parse_zipcloud(data: dict) -> PostalResult:
    if data.get("status") != 200:
        return PostalResult(success=False, error=data.get("message") or ERROR_LOOKUP_FAILED)

    results = data.get("results") or []
    if not results:
        return PostalResult(success=False, error=ERROR_NOT_FOUND)

    first = results[0]
    prefecture = first.get("address1") or ""
    city = first.get("address2") or ""
    town = first.get("address3") or ""

    return PostalResult(
        success=True,
        address=PostalAddress(
            prefecture=prefecture,
            city=city,
            address=town,
            full_address=f"{prefecture}{city}{town}",
        ),
    )


async def lookup_postal_code(code: str) -> PostalResult:
    formatted = format_postal_code(code)
    if not is_valid_postal_code(formatted):
        return PostalResult(success=False, error=ERROR_INVALID_FORMAT)

    try:
        session = get_lookup_session()
        timeout = aiohttp.ClientTimeout(total=settings.postal_timeout_seconds)

        async with session.get(
            settings.postal_lookup_url,
            params={"zipcode": formatted},
            timeout=timeout,
        ) as resp:
            if resp.status != 200:
                logger.warning("zipcloud returned status %d for %s", resp.status, formatted)
                return PostalResult(success=False, error=ERROR_UNEXPECTED)

            # zipcloud answers with text/plain
            data = await resp.json(content_type=None)

        result = _parse_zipcloud(data)
        if result.success:
            logger.info("Postal %s → %s", formatted, result.address.full_address)
        return result

    except TimeoutError:
        logger.warning("zipcloud timeout for %s", formatted)
        return PostalResult(success=False, error=ERROR_UNEXPECTED)

    except aiohttp.ClientError as exc:
        logger.warning("zipcloud network error for %s: %s", formatted, exc)
        return PostalResult(success=False, error=ERROR_UNEXPECTED)

    except Exception as exc:
        logger.warning("zipcloud unexpected error for %s: %s", formatted, exc, exc_info=True)
        return PostalResult(success=False, error=ERROR_UNEXPECTED)
