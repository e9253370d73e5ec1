"""Tests for the PostgreSQL adapter and its transaction handle.

Engines and connections are mocked; no database is needed.
"""

import inspect
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from marketplace_backup.adapters.base import DatabaseClient, DatabaseTransaction
from marketplace_backup.adapters.postgres import (
    AsyncPostgresAdapter,
    PostgresTransaction,
    _prepare_rows,
    _serialize_row,
    create_async_engine_pooled,
    normalize_url,
)
from marketplace_backup.tables import metadata


def _make_transaction(rowcount: int = 0) -> tuple[PostgresTransaction, MagicMock, MagicMock]:
    conn = MagicMock()
    conn.execute = AsyncMock(return_value=MagicMock(rowcount=rowcount))
    conn.close = AsyncMock()
    trans = MagicMock()
    trans.commit = AsyncMock()
    trans.rollback = AsyncMock()
    return PostgresTransaction(conn, trans, metadata), conn, trans


class TestProtocols:
    """Every protocol method is a coroutine."""

    @pytest.mark.parametrize(
        "name",
        ["select", "begin", "create_tables", "test_connection", "close"],
    )
    def test_client_methods_async(self, name):
        assert inspect.iscoroutinefunction(getattr(DatabaseClient, name))
        assert inspect.iscoroutinefunction(getattr(AsyncPostgresAdapter, name))

    def test_client_surface(self):
        public = {name for name in vars(DatabaseClient) if not name.startswith("_")}

        assert public == {"select", "begin", "create_tables", "test_connection", "close"}

    @pytest.mark.parametrize(
        "name",
        ["delete_all", "bulk_insert", "reset_sequence", "commit", "rollback", "close"],
    )
    def test_transaction_methods_async(self, name):
        assert inspect.iscoroutinefunction(getattr(DatabaseTransaction, name))
        assert inspect.iscoroutinefunction(getattr(PostgresTransaction, name))


class TestNormalizeUrl:
    def test_postgres_alias(self):
        assert normalize_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"

    def test_postgresql_scheme(self):
        assert normalize_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"

    def test_driver_already_set(self):
        url = "postgresql+asyncpg://u:p@h/db"
        assert normalize_url(url) == url


class TestCreateEngine:
    def test_pool_defaults(self):
        with patch("marketplace_backup.adapters.postgres.create_async_engine") as mock_create:
            create_async_engine_pooled("postgresql+asyncpg://u:p@h/db")

        kwargs = mock_create.call_args.kwargs
        assert kwargs["pool_size"] == 5
        assert kwargs["max_overflow"] == 10
        assert kwargs["pool_pre_ping"] is True
        assert kwargs["pool_recycle"] == 300
        assert kwargs["connect_args"] == {"timeout": 5}

    def test_overrides(self):
        with patch("marketplace_backup.adapters.postgres.create_async_engine") as mock_create:
            create_async_engine_pooled(
                "postgresql+asyncpg://u:p@h/db",
                pool_size=1,
                connect_args={"timeout": 30},
            )

        kwargs = mock_create.call_args.kwargs
        assert kwargs["pool_size"] == 1
        assert kwargs["connect_args"] == {"timeout": 30}

    def test_adapter_normalizes_url(self):
        with patch("marketplace_backup.adapters.postgres.create_async_engine_pooled") as mock_create:
            AsyncPostgresAdapter("postgres://u:p@h/db", echo=True)

        mock_create.assert_called_once_with("postgresql+asyncpg://u:p@h/db", echo=True)


class TestRowConversion:
    def test_serialize_row(self):
        ts = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        row = _serialize_row({"id": 1, "registration_date": ts, "price_options": "[]"})

        assert row == {
            "id": 1,
            "registration_date": "2024-05-01T12:00:00+00:00",
            "price_options": "[]",
        }

    def test_prepare_rows_parses_timestamps(self):
        rows = _prepare_rows(
            metadata.tables["users"],
            [{"id": 1, "registration_date": "2024-05-01T12:00:00+00:00"}],
        )

        assert rows[0]["registration_date"] == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_prepare_rows_drops_unknown_keys(self):
        rows = _prepare_rows(metadata.tables["users"], [{"id": 1, "legacy_flag": True}])

        assert rows == [{"id": 1}]

    def test_prepare_rows_keeps_json_text(self):
        rows = _prepare_rows(
            metadata.tables["products"],
            [{"id": 1, "price_options": '[{"scale":1}]'}],
        )

        assert rows[0]["price_options"] == '[{"scale":1}]'


class TestPostgresTransaction:
    async def test_delete_all_returns_rowcount(self):
        tx, conn, _ = _make_transaction(rowcount=3)

        assert await tx.delete_all("orders") == 3
        conn.execute.assert_awaited_once()

    async def test_bulk_insert_groups_by_key_set(self):
        tx, conn, _ = _make_transaction()
        rows = [
            {"id": 1, "username": "a", "password": "x"},
            {"id": 2, "username": "b", "password": "y", "unknown": 1},
            {"id": 3, "username": "c"},
        ]

        inserted = await tx.bulk_insert("users", rows)

        assert inserted == 3
        assert conn.execute.await_count == 2
        batch_sizes = sorted(len(call.args[1]) for call in conn.execute.await_args_list)
        assert batch_sizes == [1, 2]

    async def test_bulk_insert_empty(self):
        tx, conn, _ = _make_transaction()

        assert await tx.bulk_insert("users", []) == 0
        conn.execute.assert_not_awaited()

    async def test_unknown_table(self):
        tx, _, _ = _make_transaction()

        with pytest.raises(ValueError, match="Unknown table"):
            await tx.delete_all("coupons")

    async def test_reset_sequence(self):
        tx, conn, _ = _make_transaction()

        await tx.reset_sequence("orders")

        statement, params = conn.execute.await_args.args
        assert "pg_get_serial_sequence" in str(statement)
        assert "MAX(id) FROM orders" in str(statement)
        assert params == {"table_name": "orders", "pk_name": "id"}

    async def test_commit_rollback_close(self):
        tx, conn, trans = _make_transaction()

        await tx.commit()
        await tx.rollback()
        await tx.close()

        trans.commit.assert_awaited_once()
        trans.rollback.assert_awaited_once()
        conn.close.assert_awaited_once()


class TestAdapterBegin:
    def _make_adapter(self) -> tuple[AsyncPostgresAdapter, MagicMock]:
        with patch("marketplace_backup.adapters.postgres.create_async_engine_pooled"):
            adapter = AsyncPostgresAdapter("postgresql://u:p@h/db")
        conn = MagicMock()
        conn.close = AsyncMock()
        adapter._engine = MagicMock()
        adapter._engine.connect = AsyncMock(return_value=conn)
        return adapter, conn

    async def test_returns_transaction(self):
        adapter, conn = self._make_adapter()
        conn.begin = AsyncMock(return_value=MagicMock())

        tx = await adapter.begin()

        assert isinstance(tx, PostgresTransaction)
        conn.close.assert_not_awaited()

    async def test_connection_released_when_begin_fails(self):
        adapter, conn = self._make_adapter()
        conn.begin = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await adapter.begin()

        conn.close.assert_awaited_once()
