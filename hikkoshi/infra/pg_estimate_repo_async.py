# hikkoshi/infra/pg_estimate_repo_async.py
"""
Async PostgreSQL estimate repository (asyncpg).
Stores submitted estimates and links them to LINE users.
"""
from __future__ import annotations
from typing import Any, Optional

from hikkoshi.core.ports import AsyncEstimateRepository
from hikkoshi.infra.db_async import db_conn
from hikkoshi.infra.db_resilience_async import retry_on_transient_error
from hikkoshi.infra.logging_config import get_logger, mask_user_id
from hikkoshi.infra.metrics import AppMetrics

logger = get_logger(__name__)

_TEXT_COLUMNS = (
    "pickup_prefecture",
    "pickup_city",
    "pickup_town",
    "delivery_prefecture",
    "delivery_city",
    "delivery_town",
    "pickup_date",
    "delivery_date",
)

_SELECT_COLUMNS = """
    id, pickup_prefecture, pickup_city, pickup_town,
    delivery_prefecture, delivery_city, delivery_town,
    pickup_date, delivery_date, total_fee, distance_km,
    created_at, line_user_id
"""


def _row_count(status: str | None) -> int:
    # asyncpg returns a command tag such as "UPDATE 1" or "INSERT 0 1"
    if not status:
        return 0
    try:
        return int(status.split()[-1])
    except ValueError:
        return 0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(round(float(value)))


def _float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


class AsyncPostgresEstimateRepository(AsyncEstimateRepository):
    """Async PostgreSQL implementation of EstimateRepository using asyncpg."""

    @retry_on_transient_error()
    async def insert_estimate(self, estimate_id: str, payload: dict[str, Any]) -> None:
        """
        Insert a new estimate row.

        Missing text fields are stored as empty strings, missing numbers as 0.
        created_at is set by the database.
        """
        values = [_text(payload.get(col)) for col in _TEXT_COLUMNS]

        async with db_conn() as conn:
            await conn.execute(
                """
                INSERT INTO estimates (
                    id, pickup_prefecture, pickup_city, pickup_town,
                    delivery_prefecture, delivery_city, delivery_town,
                    pickup_date, delivery_date, total_fee, distance_km
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                """,
                estimate_id,
                *values,
                _int(payload.get("total_fee")),
                _float(payload.get("distance_km")),
            )

        AppMetrics.estimate_saved()
        logger.info(f"Estimate saved: id={estimate_id}")

    @retry_on_transient_error()
    async def link_estimate(self, estimate_id: str, line_user_id: str) -> bool:
        async with db_conn() as conn:
            status = await conn.execute(
                "UPDATE estimates SET line_user_id = $1 WHERE id = $2",
                line_user_id,
                estimate_id,
            )

        linked = _row_count(status) > 0
        if linked:
            AppMetrics.estimate_linked()
            logger.info(f"Estimate linked: id={estimate_id}, user={mask_user_id(line_user_id)}")
        else:
            logger.warning(f"Estimate link failed, not found: id={estimate_id}")
        return linked

    @retry_on_transient_error()
    async def get_latest_by_line_user_id(self, line_user_id: str) -> Optional[dict[str, Any]]:
        async with db_conn() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_SELECT_COLUMNS}
                FROM estimates
                WHERE line_user_id = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                line_user_id,
            )
        return dict(row) if row else None

    @retry_on_transient_error()
    async def get_by_id(self, estimate_id: str) -> Optional[dict[str, Any]]:
        async with db_conn() as conn:
            row = await conn.fetchrow(
                f"SELECT {_SELECT_COLUMNS} FROM estimates WHERE id = $1",
                estimate_id,
            )
        return dict(row) if row else None
