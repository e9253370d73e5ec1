"""marketplace-backup: export and full-replace restore for the marketplace store.

Reads the users, products, orders and settings tables into one JSON
document and atomically replaces all four tables from such a document.
Ships an async PostgreSQL adapter, TOML profile configuration, an HTTP
API and a CLI.

Usage:
    from marketplace_backup import AsyncPostgresAdapter, export_backup, restore_backup
    from marketplace_backup import BackupDocument, RestoreSummary
    from marketplace_backup import load_config, get_adapter
"""

__version__ = "0.1.0"

# Adapters
from marketplace_backup.adapters.base import DatabaseClient, DatabaseTransaction
from marketplace_backup.adapters.postgres import AsyncPostgresAdapter

# Backup pipeline
from marketplace_backup.backup.backup_restore import (
    export_backup,
    parse_backup,
    restore_backup,
    restore_from_file,
    validate_backup,
    validate_document,
    write_backup_file,
)
from marketplace_backup.backup.models import (
    MARKETPLACE_SCHEMA,
    BackupDocument,
    RestoreSummary,
    ValidationReport,
)

# Config
from marketplace_backup.config.loader import load_config
from marketplace_backup.config.models import AppConfig, DatabaseProfile

# Errors
from marketplace_backup.errors import (
    BackupError,
    CleanupWarning,
    MalformedInputError,
    PersistenceError,
    RollbackFailure,
    ValidationError,
)

# Factory
from marketplace_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    resolve_url,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "DatabaseTransaction",
    "AsyncPostgresAdapter",
    # Backup pipeline
    "export_backup",
    "parse_backup",
    "restore_backup",
    "restore_from_file",
    "validate_backup",
    "validate_document",
    "write_backup_file",
    "MARKETPLACE_SCHEMA",
    "BackupDocument",
    "RestoreSummary",
    "ValidationReport",
    # Config
    "load_config",
    "AppConfig",
    "DatabaseProfile",
    # Errors
    "BackupError",
    "CleanupWarning",
    "MalformedInputError",
    "PersistenceError",
    "RollbackFailure",
    "ValidationError",
    # Factory
    "get_adapter",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
]
