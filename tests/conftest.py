"""Shared fixtures: an in-memory transactional adapter and sample backups."""

import asyncio
import copy

import pytest

from marketplace_backup.backup.models import MARKETPLACE_SCHEMA


class InMemoryTransaction:
    """Works on a private copy of the tables; commit swaps it in."""

    def __init__(self, adapter: "InMemoryAdapter") -> None:
        self._adapter = adapter
        self._working = copy.deepcopy(adapter.tables)
        self.committed = False
        self.rolled_back = False
        self.closed = False

    async def delete_all(self, table: str) -> int:
        self._adapter.calls.append(("delete_all", table))
        deleted = len(self._working[table])
        self._working[table] = []
        return deleted

    async def bulk_insert(self, table: str, rows: list[dict]) -> int:
        self._adapter.calls.append(("bulk_insert", table))
        if self._adapter.insert_delay:
            await asyncio.sleep(self._adapter.insert_delay)
        if table in self._adapter.fail_insert_on:
            raise RuntimeError(f"insert into {table} violates constraint")
        self._working[table].extend(copy.deepcopy(rows))
        return len(rows)

    async def reset_sequence(self, table: str, pk: str = "id") -> None:
        self._adapter.calls.append(("reset_sequence", table))

    async def commit(self) -> None:
        if self._adapter.commit_delay:
            await asyncio.sleep(self._adapter.commit_delay)
        if self._adapter.fail_commit:
            raise RuntimeError("could not serialize access")
        self._adapter.tables = self._working
        self.committed = True

    async def rollback(self) -> None:
        if self._adapter.fail_rollback:
            raise RuntimeError("connection lost during rollback")
        self.rolled_back = True

    async def close(self) -> None:
        self.closed = True


class InMemoryAdapter:
    """``DatabaseClient`` over plain dicts, with failure injection."""

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = {name: [] for name in MARKETPLACE_SCHEMA.table_names}
        if tables:
            self.tables.update(copy.deepcopy(tables))
        self.fail_select_on: set[str] = set()
        self.fail_insert_on: set[str] = set()
        self.fail_begin = False
        self.fail_commit = False
        self.fail_rollback = False
        self.insert_delay = 0.0
        self.commit_delay = 0.0
        self.calls: list[tuple[str, str]] = []
        self.transactions: list[InMemoryTransaction] = []
        self.tables_created = False
        self.closed = False

    async def select(self, table, columns="*", filters=None, order_by=None):
        if table in self.fail_select_on:
            raise RuntimeError(f'relation "{table}" does not exist')
        rows = [
            copy.deepcopy(r)
            for r in self.tables[table]
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or 0)
        return rows

    async def begin(self) -> InMemoryTransaction:
        if self.fail_begin:
            raise RuntimeError("too many connections")
        tx = InMemoryTransaction(self)
        self.transactions.append(tx)
        return tx

    async def create_tables(self) -> None:
        self.tables_created = True

    async def test_connection(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


def make_backup() -> dict:
    """A small, valid backup with JSON-text columns as strings."""
    return {
        "users": [
            {"id": 1, "username": "admin", "password": "$2b$10$hash", "role": "admin"},
            {"id": 2, "username": "buyer1", "password": "$2b$10$hash2", "role": "buyer"},
        ],
        "products": [
            {
                "id": 10,
                "name": "Benchy",
                "price_options": '[{"scale":1,"price":100}]',
                "additional_images": '["/uploads/a.png"]',
            },
        ],
        "orders": [
            {
                "id": 100,
                "user_id": 2,
                "products": '[{"id":10,"qty":1}]',
                "status": "создан заказ",
                "assigned_executors": "[]",
            },
        ],
        "settings": [
            {
                "id": 1,
                "payment_info": "card",
                "price_coefficient": 5.25,
                "discount_rules": "[]",
                "show_discount_on_products": False,
            },
        ],
    }


def make_existing_tables() -> dict[str, list[dict]]:
    """Store contents before a restore, disjoint from ``make_backup()``."""
    return {
        "users": [{"id": 7, "username": "old", "password": "x", "role": "buyer"}],
        "products": [{"id": 70, "name": "Old", "price_options": "[]", "additional_images": "[]"}],
        "orders": [{"id": 700, "user_id": 7, "products": "[]", "assigned_executors": "[]"}],
        "settings": [{"id": 1, "payment_info": "old", "discount_rules": "[]"}],
    }


@pytest.fixture
def backup_data() -> dict:
    return make_backup()


@pytest.fixture
def empty_adapter() -> InMemoryAdapter:
    return InMemoryAdapter()


@pytest.fixture
def populated_adapter() -> InMemoryAdapter:
    return InMemoryAdapter(make_existing_tables())
