# hikkoshi/infra/db_async.py
"""
asyncpg pool for the estimate store.

The lifespan opens the pool before the schema check and closes it after
the HTTP sessions. The estimate repository, the migration runner and the
readiness check borrow connections through ``db_conn()``.
"""
from __future__ import annotations
from typing import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg
from hikkoshi.config import settings
from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)

APPLICATION_NAME = "hikkoshi_estimate"
COMMAND_TIMEOUT_SECONDS = 30  # estimate queries are single-row lookups

_pool: asyncpg.Pool | None = None


async def init_pool() -> None:
    global _pool

    if _pool is not None:
        return

    _pool = await asyncpg.create_pool(
        dsn=settings.database_dsn,
        min_size=settings.pg_pool_min,
        max_size=settings.pg_pool_max,
        timeout=settings.pg_connect_timeout,
        command_timeout=COMMAND_TIMEOUT_SECONDS,
        server_settings={"application_name": APPLICATION_NAME},
    )
    logger.info(f"Estimate store pool open: min={settings.pg_pool_min}, max={settings.pg_pool_max}")


async def close_pool() -> None:
    global _pool

    if _pool is None:
        return

    pool, _pool = _pool, None
    await pool.close()
    logger.info("Estimate store pool closed")


@asynccontextmanager
async def db_conn(autocommit: bool = True) -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow a pooled connection.

    With ``autocommit=False`` the block runs in one transaction (the
    migration runner applies all pending files this way); otherwise every
    statement commits on its own.

    Raises:
        RuntimeError: ``init_pool()`` has not run (e.g. outside the lifespan)
    """
    if _pool is None:
        raise RuntimeError("Estimate store pool is not open; call init_pool() first")

    async with _pool.acquire() as conn:
        if autocommit:
            yield conn
        else:
            async with conn.transaction():
                yield conn
