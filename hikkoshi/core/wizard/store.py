# hikkoshi/core/wizard/store.py
"""
Key/value store for wizard step payloads.

Each wizard session keeps one JSON-compatible payload per step. The
engine never touches this store; the HTTP layer reads inputs from it
and writes the computed estimate back.
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, Protocol

from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)


class WizardKey(str, Enum):
    DATES = "dates"
    STEP1 = "step1"
    STEP2 = "step2"
    DISTANCE = "distance"
    RESULT = "result"


class WizardStore(Protocol):
    def get(self, session_id: str, key: WizardKey) -> dict[str, Any] | None: ...
    def set(self, session_id: str, key: WizardKey, value: dict[str, Any]) -> None: ...
    def clear(self, session_id: str) -> None: ...
    def get_all(self, session_id: str) -> dict[str, dict[str, Any] | None]: ...


class InMemoryWizardStore:
    """
    Process-local store; sessions idle longer than ``ttl_seconds`` are dropped.

    ``_touched`` is kept in last-write order, so every ``set`` sweeps the
    expired sessions from its front.
    """

    def __init__(self, ttl_seconds: int = 21600):
        self.ttl_seconds = ttl_seconds
        self._data: dict[str, dict[WizardKey, dict[str, Any]]] = {}
        self._touched: dict[str, float] = {}

    def _is_expired(self, touched: float, now: float) -> bool:
        return now - touched > self.ttl_seconds

    def _expire(self, session_id: str) -> None:
        touched = self._touched.get(session_id)
        if touched is not None and self._is_expired(touched, time.monotonic()):
            logger.debug(f"Wizard session expired: {session_id}")
            self.clear(session_id)

    def cleanup_expired(self) -> int:
        """Drop every idle session; returns how many were removed."""
        now = time.monotonic()
        expired = []
        for session_id, touched in self._touched.items():
            if not self._is_expired(touched, now):
                break
            expired.append(session_id)

        for session_id in expired:
            self.clear(session_id)
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired wizard sessions (ttl={self.ttl_seconds}s)")
        return len(expired)

    def get(self, session_id: str, key: WizardKey) -> dict[str, Any] | None:
        self._expire(session_id)
        return self._data.get(session_id, {}).get(WizardKey(key))

    def set(self, session_id: str, key: WizardKey, value: dict[str, Any]) -> None:
        self._expire(session_id)
        self._data.setdefault(session_id, {})[WizardKey(key)] = value
        # Re-insert so the most recently written session is last
        self._touched.pop(session_id, None)
        self._touched[session_id] = time.monotonic()
        self.cleanup_expired()

    def session_count(self) -> int:
        return len(self._data)

    def clear(self, session_id: str) -> None:
        self._data.pop(session_id, None)
        self._touched.pop(session_id, None)

    def get_all(self, session_id: str) -> dict[str, dict[str, Any] | None]:
        return {key.value: self.get(session_id, key) for key in WizardKey}
