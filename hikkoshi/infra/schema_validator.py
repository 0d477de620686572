# hikkoshi/infra/schema_validator.py
"""
Schema version validator.

The application does NOT run migrations itself: it checks that the
latest applied migration matches ``settings.expected_schema_version``
and refuses to start otherwise.
"""
from __future__ import annotations
from hikkoshi.config import settings
from hikkoshi.infra.db_async import db_conn
from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)


async def validate_schema_version() -> dict:
    """
    Returns:
        dict with keys ok, current_version, expected_version

    Raises:
        RuntimeError: If the schema is missing or at a different version
    """
    async with db_conn() as conn:
        table_exists = await conn.fetchval(
            """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_schema = 'public'
                AND table_name = 'schema_migrations'
            )
            """
        )

        if not table_exists:
            error = (
                "Schema migrations table not found. "
                "Run migrations first: python -m hikkoshi.infra.migrate"
            )
            logger.critical(error)
            raise RuntimeError(error)

        latest = await conn.fetchrow(
            """
            SELECT version, applied_at
            FROM schema_migrations
            ORDER BY version DESC
            LIMIT 1
            """
        )

    if not latest:
        error = (
            "No migrations have been applied. "
            "Run migrations first: python -m hikkoshi.infra.migrate"
        )
        logger.critical(error)
        raise RuntimeError(error)

    current_version = latest['version']

    if current_version != settings.expected_schema_version:
        error = (
            f"Schema version mismatch! "
            f"Expected: {settings.expected_schema_version}, "
            f"Found: {current_version}. "
            f"Run migrations to update schema: python -m hikkoshi.infra.migrate"
        )
        logger.critical(error)
        raise RuntimeError(error)

    return {
        "ok": True,
        "current_version": current_version,
        "expected_version": settings.expected_schema_version,
    }
