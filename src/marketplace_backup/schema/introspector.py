"""Live schema introspection via ``information_schema``."""

from marketplace_backup.adapters.base import DatabaseClient


class SchemaIntrospector:
    """Reads table and column names from a live database.

    Usage:
        introspector = SchemaIntrospector(adapter)
        columns = await introspector.get_column_names()
    """

    # Tables to exclude from introspection (system / migration tables)
    EXCLUDED_TABLES = {
        "SequelizeMeta",
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(self, adapter: DatabaseClient) -> None:
        self._adapter = adapter

    async def get_column_names(self, schema_name: str = "public") -> dict[str, set[str]]:
        """Get column names for all tables in *schema_name*.

        Returns:
            Dict mapping table name to set of column names
        """
        rows = await self._adapter.select(
            "information_schema.columns",
            "table_name, column_name",
            filters={"table_schema": schema_name},
        )

        result: dict[str, set[str]] = {}
        for row in rows:
            table_name = row["table_name"]
            if table_name in self.EXCLUDED_TABLES:
                continue
            result.setdefault(table_name, set()).add(row["column_name"])
        return result
