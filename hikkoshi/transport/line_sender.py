# hikkoshi/transport/line_sender.py
"""
LINE Messaging API outbound sender.

Error classification (LineSendError.retryable):
- Access token invalid (401)        → NOT retryable (needs human intervention)
- Forbidden (403)                   → NOT retryable
- Bad request / expired token (400) → NOT retryable (reply tokens are single-use)
- Rate limiting (429)               → retryable
- Network / timeout                 → retryable
- Unknown server error              → retryable

HTTP session lifecycle:
- Uses the shared LINE session from hikkoshi.infra.http_client.
- Call close_all_sessions() during application shutdown.
"""
from __future__ import annotations

import aiohttp

from hikkoshi.config import settings
from hikkoshi.infra.http_client import get_line_session
from hikkoshi.infra.logging_config import get_logger
from hikkoshi.infra.metrics import inc_counter

logger = get_logger(__name__)

LINE_API_BASE = "https://api.line.me/v2/bot"
LINE_REPLY_URL = f"{LINE_API_BASE}/message/reply"

# Messaging API limit per reply
MAX_MESSAGES_PER_REPLY = 5


class LineSendError(Exception):
    """Error sending a message via the LINE Messaging API.

    Attributes:
        status:    HTTP status code (0 for connection-level errors).
        retryable: Whether the caller should schedule a retry.
    """

    def __init__(self, status: int, message: str, *, retryable: bool = False):
        self.status = status
        self.message = message
        self.retryable = retryable
        super().__init__(f"LINE API error {status}: {message}")


def text_message(text: str) -> dict:
    return {"type": "text", "text": text}


async def reply_message(
    reply_token: str,
    messages: list[dict],
    access_token: str | None = None,
) -> dict:
    """
    Reply to an event with up to five messages.

    Raises:
        LineSendError: On API errors (check .retryable before scheduling retry)
    """
    if not messages:
        raise ValueError("messages must not be empty")
    if len(messages) > MAX_MESSAGES_PER_REPLY:
        raise ValueError(f"LINE accepts at most {MAX_MESSAGES_PER_REPLY} messages per reply")

    token = access_token or settings.line_channel_access_token
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    payload = {"replyToken": reply_token, "messages": messages}

    return await _send_request(LINE_REPLY_URL, payload, headers)


async def _safe_response_json(resp: aiohttp.ClientResponse) -> dict | None:
    """Parse JSON from response, returning None if body is not valid JSON."""
    try:
        return await resp.json(content_type=None)
    except Exception:
        logger.warning(f"LINE API returned non-JSON body: status={resp.status}")
        return None


async def _send_request(url: str, payload: dict, headers: dict) -> dict:
    try:
        session = get_line_session()
        async with session.post(url, json=payload, headers=headers) as resp:
            body = await _safe_response_json(resp)

            if resp.status == 200:
                logger.info(f"LINE reply sent: messages={len(payload.get('messages', []))}")
                inc_counter("line_outbound_sent")
                return body or {}

            # --- Error path ------------------------------------------------
            error_desc = (body or {}).get("message", "Unknown error")

            if resp.status == 401:
                logger.error(f"LINE API auth error (access token invalid): {error_desc}")
                inc_counter("line_outbound_auth_error")
                raise LineSendError(resp.status, error_desc, retryable=False)

            if resp.status == 403:
                logger.warning(f"LINE API forbidden: {error_desc}")
                inc_counter("line_outbound_forbidden")
                raise LineSendError(resp.status, error_desc, retryable=False)

            if resp.status == 400:
                logger.warning(f"LINE API bad request: {error_desc}")
                inc_counter("line_outbound_bad_request")
                raise LineSendError(resp.status, error_desc, retryable=False)

            if resp.status == 429:
                logger.warning(f"LINE API rate limit: {error_desc}")
                inc_counter("line_outbound_rate_limited")
                raise LineSendError(resp.status, error_desc, retryable=True)

            logger.error(f"LINE API error: status={resp.status}, msg={error_desc}")
            inc_counter("line_outbound_error")
            raise LineSendError(resp.status, error_desc, retryable=True)

    except LineSendError:
        raise
    except aiohttp.ClientError as exc:
        logger.error(f"LINE API connection error: {exc}", exc_info=True)
        inc_counter("line_outbound_connection_error")
        raise LineSendError(0, str(exc), retryable=True)
    except TimeoutError as exc:
        logger.error("LINE API timeout", exc_info=True)
        inc_counter("line_outbound_connection_error")
        raise LineSendError(0, str(exc) or "timeout", retryable=True)
