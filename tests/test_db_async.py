# tests/test_db_async.py
from contextlib import asynccontextmanager
from unittest.mock import MagicMock, patch

import pytest

from hikkoshi.infra.db_async import db_conn


def _fake_pool(conn):
    events = []

    @asynccontextmanager
    async def acquire():
        events.append("acquire")
        try:
            yield conn
        finally:
            events.append("release")

    @asynccontextmanager
    async def transaction():
        events.append("begin")
        try:
            yield
        except Exception:
            events.append("rollback")
            raise
        events.append("commit")

    pool = MagicMock()
    pool.acquire = acquire
    conn.transaction = transaction
    return pool, events


class TestDbConn:

    @pytest.mark.asyncio
    async def test_requires_open_pool(self):
        with patch("hikkoshi.infra.db_async._pool", None):
            with pytest.raises(RuntimeError, match="init_pool"):
                async with db_conn():
                    pass

    @pytest.mark.asyncio
    async def test_autocommit_has_no_transaction(self):
        conn = MagicMock()
        pool, events = _fake_pool(conn)

        with patch("hikkoshi.infra.db_async._pool", pool):
            async with db_conn() as borrowed:
                assert borrowed is conn

        assert events == ["acquire", "release"]

    @pytest.mark.asyncio
    async def test_transaction_commits(self):
        pool, events = _fake_pool(MagicMock())

        with patch("hikkoshi.infra.db_async._pool", pool):
            async with db_conn(autocommit=False):
                pass

        assert events == ["acquire", "begin", "commit", "release"]

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_and_releases(self):
        pool, events = _fake_pool(MagicMock())

        with patch("hikkoshi.infra.db_async._pool", pool):
            with pytest.raises(ValueError):
                async with db_conn(autocommit=False):
                    raise ValueError("boom")

        assert events == ["acquire", "begin", "rollback", "release"]
