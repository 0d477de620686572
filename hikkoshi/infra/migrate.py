#!/usr/bin/env python3
# hikkoshi/infra/migrate.py
"""
Standalone migration runner.

Run migrations separately from application startup:
    python -m hikkoshi.infra.migrate

The application validates the schema version at startup but never
runs migrations itself.
"""
import asyncio
import sys

from hikkoshi.infra.migrations_async import apply_migrations
from hikkoshi.infra.db_async import init_pool, close_pool
from hikkoshi.infra.logging_config import setup_logging, get_logger
from hikkoshi.config import settings

setup_logging(level="INFO", use_json=False)
logger = get_logger(__name__)


async def main() -> int:
    logger.info("=" * 60)
    logger.info("Database Migration Runner")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Database: {settings.pghost}:{settings.pgport}/{settings.pgdatabase}")

    try:
        await init_pool()
        logger.info("Database connected")

        result = await apply_migrations()

        logger.info(f"Status: {'SUCCESS' if result['ok'] else 'FAILED'}")
        logger.info(f"Migrations applied: {result['count']}")
        for migration in result['applied']:
            logger.info(f"  applied {migration}")
        if not result['applied']:
            logger.info("No new migrations to apply")

        return 0 if result['ok'] else 1

    except Exception as exc:
        logger.critical(f"MIGRATION FAILED: {exc}", exc_info=True)
        return 1

    finally:
        await close_pool()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
