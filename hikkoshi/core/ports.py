# hikkoshi/core/ports.py
from __future__ import annotations
from typing import Any, Protocol, Optional

from hikkoshi.core.pricing.models import Address, DistanceResult


class AsyncEstimateRepository(Protocol):
    async def insert_estimate(self, estimate_id: str, payload: dict[str, Any]) -> None: ...

    async def link_estimate(self, estimate_id: str, line_user_id: str) -> bool:
        """
        True  => estimate existed and is now linked to the LINE user
        False => no estimate with that id
        """
        ...

    async def get_latest_by_line_user_id(self, line_user_id: str) -> Optional[dict[str, Any]]: ...

    async def get_by_id(self, estimate_id: str) -> Optional[dict[str, Any]]: ...


class DistanceProvider(Protocol):
    name: str

    async def get_distance(self, origin: Address, destination: Address) -> DistanceResult: ...
