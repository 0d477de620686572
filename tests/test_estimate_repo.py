# tests/test_estimate_repo.py
"""
Tests for the asyncpg estimate repository and the transient-error retry.

The connection is mocked; no database is needed.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from hikkoshi.infra.db_resilience_async import is_transient_error, retry_on_transient_error
from hikkoshi.infra.pg_estimate_repo_async import AsyncPostgresEstimateRepository


def _patch_db_conn(conn):
    @asynccontextmanager
    async def fake_db_conn(autocommit: bool = True):
        yield conn

    return patch("hikkoshi.infra.pg_estimate_repo_async.db_conn", fake_db_conn)


def _make_conn():
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    conn.fetchrow = AsyncMock(return_value=None)
    return conn


class TestInsertEstimate:

    @pytest.mark.asyncio
    async def test_insert_flat_payload(self, sample_estimate_row):
        conn = _make_conn()
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            await repo.insert_estimate("abcDEF123456", sample_estimate_row)

        args = conn.execute.call_args.args
        assert "INSERT INTO estimates" in args[0]
        assert args[1:] == (
            "abcDEF123456",
            "東京都", "渋谷区", "神南1丁目",
            "大阪府", "大阪市北区", "梅田1丁目",
            "2025-06-01", "2025-06-03",
            56000, 500.0,
        )

    @pytest.mark.asyncio
    async def test_missing_fields_stored_as_defaults(self):
        conn = _make_conn()
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            await repo.insert_estimate("id1", {"pickup_prefecture": "東京都"})

        args = conn.execute.call_args.args
        assert args[2] == "東京都"
        assert args[3:10] == ("", "", "", "", "", "", "")
        assert args[10] == 0
        assert args[11] == 0.0


class TestLinkEstimate:

    @pytest.mark.asyncio
    async def test_linked(self, line_user_id):
        conn = _make_conn()
        conn.execute = AsyncMock(return_value="UPDATE 1")
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            assert await repo.link_estimate("id1", line_user_id) is True

        assert conn.execute.call_args.args[1:] == (line_user_id, "id1")

    @pytest.mark.asyncio
    async def test_unknown_id(self, line_user_id):
        conn = _make_conn()
        conn.execute = AsyncMock(return_value="UPDATE 0")
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            assert await repo.link_estimate("missing", line_user_id) is False

    @pytest.mark.asyncio
    async def test_relink_replaces_user(self):
        conn = _make_conn()
        conn.execute = AsyncMock(return_value="UPDATE 1")
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            await repo.link_estimate("id1", "Ufirst")
            await repo.link_estimate("id1", "Usecond")

        assert conn.execute.call_args.args[1] == "Usecond"


class TestReads:

    @pytest.mark.asyncio
    async def test_get_latest_by_line_user_id(self, sample_estimate_row, line_user_id):
        conn = _make_conn()
        conn.fetchrow = AsyncMock(return_value=sample_estimate_row)
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            row = await repo.get_latest_by_line_user_id(line_user_id)

        assert row == sample_estimate_row
        query = conn.fetchrow.call_args.args[0]
        assert "ORDER BY created_at DESC" in query
        assert "LIMIT 1" in query

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self):
        conn = _make_conn()
        repo = AsyncPostgresEstimateRepository()

        with _patch_db_conn(conn):
            assert await repo.get_by_id("nope") is None


# ============================================================================
# Transient error retry
# ============================================================================

class TestRetryOnTransientError:

    def test_classification(self):
        assert is_transient_error(ConnectionError("reset")) is True
        assert is_transient_error(asyncio.TimeoutError()) is True
        assert is_transient_error(asyncpg.UniqueViolationError("dup")) is False
        assert is_transient_error(ValueError("bad")) is False

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = {"n": 0}

        @retry_on_transient_error(max_retries=2, initial_delay=0)
        async def flaky():
            calls["n"] += 1
            if calls["n"] < 2:
                raise ConnectionError("connection reset")
            return "ok"

        assert await flaky() == "ok"
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_non_transient_raised_immediately(self):
        fn = AsyncMock(side_effect=ValueError("bad"))
        fn.__name__ = "fn"
        wrapped = retry_on_transient_error(max_retries=3, initial_delay=0)(fn)

        with pytest.raises(ValueError):
            await wrapped()
        assert fn.call_count == 1

    @pytest.mark.asyncio
    async def test_gives_up(self):
        fn = AsyncMock(side_effect=ConnectionError("server closed"))
        fn.__name__ = "fn"
        wrapped = retry_on_transient_error(max_retries=2, initial_delay=0)(fn)

        with pytest.raises(ConnectionError):
            await wrapped()
        assert fn.call_count == 3
