"""Database adapters package.

Provides the ``DatabaseClient`` and ``DatabaseTransaction`` Protocols and
the async PostgreSQL adapter.

Usage:
    from marketplace_backup.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from marketplace_backup.adapters.base import DatabaseClient, DatabaseTransaction
from marketplace_backup.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DatabaseClient",
    "DatabaseTransaction",
    "AsyncPostgresAdapter",
]
