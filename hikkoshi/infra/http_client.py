# hikkoshi/infra/http_client.py
"""
aiohttp sessions shared by the outbound integrations.

Two profiles, each created on first use and reused by every request:

- ``line``   : LINE Messaging API replies
- ``lookup`` : Google Routes distance and zipcloud postal lookups

The distance and postal clients pass their own (shorter) per-request
timeout; the profile timeout is the ceiling. ``close_all_sessions()``
runs from the application lifespan on shutdown.
"""
from __future__ import annotations

import aiohttp

from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)

# profile -> (timeout, connection pool limit)
_PROFILES: dict[str, tuple[aiohttp.ClientTimeout, int]] = {
    "line": (aiohttp.ClientTimeout(total=25, connect=5), 20),
    "lookup": (aiohttp.ClientTimeout(total=30, connect=5), 10),
}

_sessions: dict[str, aiohttp.ClientSession] = {}


def _session(profile: str) -> aiohttp.ClientSession:
    session = _sessions.get(profile)
    if session is None or session.closed:
        timeout, limit = _PROFILES[profile]
        session = aiohttp.ClientSession(
            timeout=timeout,
            connector=aiohttp.TCPConnector(
                keepalive_timeout=30,
                limit=limit,
                enable_cleanup_closed=True,
            ),
        )
        _sessions[profile] = session
        logger.debug("HTTP session '%s' opened (limit=%d)", profile, limit)
    return session


def get_line_session() -> aiohttp.ClientSession:
    return _session("line")


def get_lookup_session() -> aiohttp.ClientSession:
    return _session("lookup")


async def close_all_sessions() -> None:
    for profile in list(_sessions):
        session = _sessions.pop(profile)
        if not session.closed:
            await session.close()
            logger.debug("HTTP session '%s' closed", profile)
