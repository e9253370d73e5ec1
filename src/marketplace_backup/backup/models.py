"""Backup models: declarative table list, documents, and results.

``MARKETPLACE_SCHEMA`` declares the four tables in dependency order,
which of them a backup must contain, and which columns hold
JSON-encoded text.  The export/restore engine iterates it instead of
hardcoding table names.

Usage:
    from marketplace_backup.backup.models import MARKETPLACE_SCHEMA, BackupDocument

    for table_def in MARKETPLACE_SCHEMA.tables:
        print(table_def.name, table_def.required)
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TableDef(BaseModel):
    """Definition of a table for backup/restore operations."""

    name: str                                       # table name
    pk: str = "id"                                  # primary key column
    required: bool = True                           # must be present in a backup
    json_text_fields: list[str] = Field(default_factory=list)  # JSON stored as text


class BackupSchema(BaseModel):
    """Declarative backup schema. Tables ordered by dependency (parents first)."""

    tables: list[TableDef]

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    @property
    def required_tables(self) -> list[str]:
        return [t.name for t in self.tables if t.required]

    def get(self, name: str) -> TableDef | None:
        """Find a TableDef by name."""
        for t in self.tables:
            if t.name == name:
                return t
        return None


MARKETPLACE_SCHEMA = BackupSchema(
    tables=[
        TableDef(name="users"),
        TableDef(name="products", json_text_fields=["price_options", "additional_images"]),
        TableDef(name="orders", json_text_fields=["products", "assigned_executors"]),
        TableDef(name="settings", required=False, json_text_fields=["discount_rules"]),
    ]
)


class BackupDocument(BaseModel):
    """Full snapshot of the four marketplace tables.

    Rows are kept exactly as stored.  JSON-text columns stay encoded
    as strings; consumers must not assume row order is meaningful.
    """

    users: list[dict[str, Any]] = Field(default_factory=list)
    products: list[dict[str, Any]] = Field(default_factory=list)
    orders: list[dict[str, Any]] = Field(default_factory=list)
    settings: list[dict[str, Any]] = Field(default_factory=list)

    def rows(self, table: str) -> list[dict[str, Any]]:
        return getattr(self, table)


class RestoreSummary(BaseModel):
    """Per-table counts of records written by a successful restore."""

    users: int = 0
    products: int = 0
    orders: int = 0
    settings: int = 0
    warnings: list[str] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "users": self.users,
            "products": self.products,
            "orders": self.orders,
            "settings": self.settings,
        }


class RestorePhase(str, Enum):
    """Restore state machine phases, in order."""

    RECEIVED = "received"
    VALIDATED = "validated"
    TRANSACTION_OPEN = "transaction_open"
    TABLES_CLEARED = "tables_cleared"
    TABLES_REPOPULATED = "tables_repopulated"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class ValidationReport(BaseModel):
    """Result of offline backup file validation."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
