"""Database client protocol definitions.

Defines the ``DatabaseClient`` and ``DatabaseTransaction`` Protocols
that adapters must implement.  All methods are ``async def`` -- the
library is async-first.

Usage:
    from marketplace_backup.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("users", "*", order_by="id")
        tx = await client.begin()
        try:
            await tx.delete_all("settings")
            await tx.bulk_insert("settings", [{"price_coefficient": 5.25}])
            await tx.commit()
        except Exception:
            await tx.rollback()
            raise
        finally:
            await tx.close()
"""

from typing import Any, Protocol


class DatabaseTransaction(Protocol):
    """A single unit of work spanning any number of tables.

    Nothing written through a transaction is visible to other
    connections until ``commit()`` succeeds.
    """

    async def delete_all(self, table: str) -> int:
        """Delete every row in *table*.

        Returns:
            Number of rows deleted.
        """
        ...

    async def bulk_insert(self, table: str, rows: list[dict]) -> int:
        """Insert *rows* into *table* in one batched operation.

        Row values are written verbatim.  Keys that are not columns of
        the table are ignored.

        Returns:
            Number of rows inserted.
        """
        ...

    async def reset_sequence(self, table: str, pk: str = "id") -> None:
        """Advance the serial sequence of *pk* past the highest stored id."""
        ...

    async def commit(self) -> None:
        """Commit the transaction."""
        ...

    async def rollback(self) -> None:
        """Roll back the transaction."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    All methods are async -- callers must ``await`` every operation.
    """

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: Comma-separated column names (e.g., ``"id, username"``).
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select("orders", filters={"status": "done"})
        """
        ...

    async def begin(self) -> DatabaseTransaction:
        """Open a new transaction on a dedicated connection.

        The caller owns the returned transaction and must finish it with
        ``commit()`` or ``rollback()`` and then ``close()``.
        """
        ...

    async def create_tables(self) -> None:
        """Create any missing marketplace tables."""
        ...

    async def test_connection(self) -> bool:
        """Return ``True`` if the database answers a trivial query."""
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
