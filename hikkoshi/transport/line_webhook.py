# hikkoshi/transport/line_webhook.py
"""
LINE Messaging API webhook handler.

Handles:
- POST /webhook: event batches from the LINE platform

Security features:
- X-Line-Signature validation (base64 HMAC-SHA256 of the raw body)
- Events in one batch are processed concurrently; a failing event is
  logged and does not fail the batch
"""
from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from hikkoshi.config import settings
from hikkoshi.core.messages import build_follow_message
from hikkoshi.core.ports import AsyncEstimateRepository
from hikkoshi.infra.logging_config import get_logger, LogContext, mask_user_id
from hikkoshi.infra.metrics import AppMetrics, inc_counter
from hikkoshi.transport.line_sender import reply_message, text_message
from hikkoshi.transport.security import verify_line_signature

logger = get_logger(__name__)


async def handle_follow_event(
    event: dict[str, Any],
    estimates: AsyncEstimateRepository,
    request_id: str | None = None,
) -> dict:
    """
    Greet a user who added the official account.

    Looks up the user's most recent linked estimate and replies with its
    summary, or with a plain welcome when there is none.
    """
    line_user_id = (event.get("source") or {}).get("userId")
    log_ctx = LogContext(
        logger,
        request_id=request_id,
        line_user_id=mask_user_id(line_user_id) if line_user_id else None,
    )

    estimate = None
    if line_user_id:
        estimate = await estimates.get_latest_by_line_user_id(line_user_id)

    text = build_follow_message(estimate)
    reply_token = event.get("replyToken")
    if not reply_token:
        log_ctx.warning("Follow event without replyToken, not replying")
        return {"type": "follow", "status": "no_reply_token"}

    await reply_message(reply_token, [text_message(text)])
    log_ctx.info(f"Follow reply sent: has_estimate={estimate is not None}")
    return {"type": "follow", "status": "replied", "has_estimate": estimate is not None}


async def handle_event(
    event: dict[str, Any],
    estimates: AsyncEstimateRepository,
    request_id: str | None = None,
) -> dict:
    event_type = event.get("type")
    inc_counter("line_events_total", type=str(event_type))

    try:
        if event_type == "follow":
            return await handle_follow_event(event, estimates, request_id)
        return {"type": event_type, "status": "ignored"}

    except Exception as exc:
        logger.error(
            f"LINE event processing failed: type={event_type}, error={exc.__class__.__name__}",
            extra={"request_id": request_id},
            exc_info=True,
        )
        return {"type": event_type, "status": "error"}


async def line_webhook_handler(request: Request) -> JSONResponse:
    """
    Handle a LINE webhook delivery.

    Raises:
        HTTPException: 401 on a bad signature, 400 on a malformed body
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", None)
    body = await request.body()

    if not settings.line_enabled:
        logger.info("Webhook received but LINE is not configured")
        return JSONResponse({"success": True, "message": "LINE credentials not configured"})

    if settings.require_webhook_validation:
        signature = request.headers.get("X-Line-Signature")
        if not verify_line_signature(settings.line_channel_secret, body, signature):
            logger.error("LINE webhook: signature validation failed")
            AppMetrics.webhook_validation_failed("line")
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("LINE webhook: invalid JSON payload")
        inc_counter("line_webhook_malformed_payload")
        raise HTTPException(status_code=400, detail="Invalid JSON")

    events = payload.get("events") if isinstance(payload, dict) else None
    if not isinstance(events, list):
        events = []

    estimates: AsyncEstimateRepository = request.app.state.estimate_repo
    results = await asyncio.gather(
        *(handle_event(event, estimates, request_id) for event in events if isinstance(event, dict))
    )

    elapsed_ms = (time.time() - start_time) * 1000
    logger.info(
        f"LINE webhook processed: events={len(results)}, elapsed={elapsed_ms:.0f}ms",
        extra={"request_id": request_id},
    )
    return JSONResponse({"success": True, "processed": len(results)})
