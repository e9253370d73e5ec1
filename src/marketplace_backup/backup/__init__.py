"""Backup export and full-replace restore.

Usage:
    from marketplace_backup.backup import export_backup, restore_backup
    from marketplace_backup.backup import BackupDocument, RestoreSummary
"""

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
    BackupSchema,
    RestorePhase,
    RestoreSummary,
    TableDef,
    ValidationReport,
)

__all__ = [
    "MARKETPLACE_SCHEMA",
    "BackupDocument",
    "BackupSchema",
    "RestorePhase",
    "RestoreSummary",
    "TableDef",
    "ValidationReport",
    "export_backup",
    "parse_backup",
    "restore_backup",
    "restore_from_file",
    "validate_backup",
    "validate_document",
    "write_backup_file",
]
