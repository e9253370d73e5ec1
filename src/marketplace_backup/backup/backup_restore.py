"""Backup export and full-replace restore for the marketplace store.

Export reads the four tables into one ``BackupDocument``.  Restore
validates a document and then, inside a single transaction, deletes
every row from every table and bulk-inserts the document's rows.
Either the whole replacement becomes visible at commit, or the
transaction is rolled back and the pre-restore data is untouched.

JSON-text columns travel in their stored encoding: export does not
decode them and restore writes them back verbatim.

Usage:
    from marketplace_backup.backup.backup_restore import (
        export_backup,
        restore_backup,
        restore_from_file,
        validate_backup,
    )

    document = await export_backup(adapter)
    path = write_backup_file(document)

    summary = await restore_from_file(adapter, path, timeout=60)

    # Validate (sync -- local file read only)
    report = validate_backup(path)
"""

import asyncio
import json
import logging
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any

from marketplace_backup.adapters.base import DatabaseClient, DatabaseTransaction
from marketplace_backup.backup.models import (
    MARKETPLACE_SCHEMA,
    BackupDocument,
    RestorePhase,
    RestoreSummary,
    ValidationReport,
)
from marketplace_backup.errors import (
    BackupError,
    CleanupWarning,
    MalformedInputError,
    PersistenceError,
    RollbackFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Step that was running when a failure interrupted the given phase
_FAILED_STEP = {
    RestorePhase.VALIDATED: "transaction_open",
    RestorePhase.TRANSACTION_OPEN: "clear",
    RestorePhase.TABLES_CLEARED: "repopulate",
    RestorePhase.TABLES_REPOPULATED: "commit",
}


# ============================================================================
# Export
# ============================================================================


async def export_backup(adapter: DatabaseClient) -> BackupDocument:
    """Read every row of the four tables into a backup document.

    Tables are read one after another without a shared transaction, so
    writes running concurrently are never blocked; the result is a
    best-effort snapshot.  Rows are ordered by primary key only to keep
    output stable -- consumers must not rely on it.

    Raises:
        PersistenceError: If any read fails.  No partial document is
            returned.
    """
    collected: dict[str, list[dict]] = {}

    for table_def in MARKETPLACE_SCHEMA.tables:
        try:
            collected[table_def.name] = await adapter.select(
                table_def.name, columns="*", order_by=table_def.pk
            )
        except Exception as e:
            logger.error(f"Export failed reading '{table_def.name}': {e}", exc_info=True)
            raise PersistenceError(
                f"Failed to read table '{table_def.name}': {e}", phase="export"
            ) from e

    document = BackupDocument(**collected)
    logger.info(
        "Exported backup: "
        + ", ".join(f"{name}={len(rows)}" for name, rows in collected.items())
    )
    return document


def write_backup_file(
    document: BackupDocument,
    output_path: str | None = None,
    backups_dir: str | Path = "backups",
) -> str:
    """Write a backup document to a JSON file.

    Args:
        document: Document returned by ``export_backup``.
        output_path: Path to save the backup.  When ``None``, generates a
            timestamped path under *backups_dir*.
        backups_dir: Directory for generated paths.

    Returns:
        Path to the created backup file.
    """
    if output_path is None:
        directory = Path(backups_dir)
        directory.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
        output_path = str(directory / f"backup-{timestamp}.json")

    output_path_obj = Path(output_path)
    output_path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path_obj, "w", encoding="utf-8") as f:
        json.dump(
            document.model_dump(exclude_none=False),
            f,
            indent=2,
            ensure_ascii=False,
            default=str,
        )

    return output_path


# ============================================================================
# Parse and validate
# ============================================================================


def parse_backup(raw: bytes | str) -> Any:
    """Decode an uploaded backup payload.

    Raises:
        MalformedInputError: If the payload is not UTF-8 or not valid JSON.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Backup is not valid UTF-8: {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid JSON: {e}") from e


def _invalid_fields(data: Any) -> list[str]:
    if not isinstance(data, dict):
        return MARKETPLACE_SCHEMA.required_tables

    invalid: list[str] = []
    for table_def in MARKETPLACE_SCHEMA.tables:
        value = data.get(table_def.name)
        if value is None and not table_def.required:
            continue
        if not isinstance(value, list) or not all(isinstance(r, dict) for r in value):
            invalid.append(table_def.name)
    return invalid


def validate_document(data: Any) -> BackupDocument:
    """Check a parsed backup and build a ``BackupDocument`` from it.

    ``users``, ``products`` and ``orders`` must be present and be arrays
    of objects (empty arrays are fine).  ``settings`` may be absent or
    ``null``; when present it must also be an array of objects.

    Raises:
        ValidationError: Listing every missing or invalid field.
    """
    invalid = _invalid_fields(data)
    if invalid:
        logger.warning(f"Backup validation failed: {', '.join(invalid)}")
        raise ValidationError(invalid)

    return BackupDocument(
        **{
            table_def.name: data.get(table_def.name) or []
            for table_def in MARKETPLACE_SCHEMA.tables
        }
    )


# ============================================================================
# Restore
# ============================================================================


async def _clear_tables(tx: DatabaseTransaction) -> None:
    """Delete all rows, children before parents, one table at a time."""
    for table_def in reversed(MARKETPLACE_SCHEMA.tables):
        deleted = await tx.delete_all(table_def.name)
        logger.debug(f"Cleared {deleted} rows from '{table_def.name}'")


async def _repopulate_tables(
    tx: DatabaseTransaction, document: BackupDocument
) -> dict[str, int]:
    """Insert the document's rows, parents before children."""
    counts: dict[str, int] = {}
    for table_def in MARKETPLACE_SCHEMA.tables:
        rows = document.rows(table_def.name)
        counts[table_def.name] = await tx.bulk_insert(table_def.name, rows) if rows else 0
        await tx.reset_sequence(table_def.name, table_def.pk)
        logger.debug(f"Inserted {counts[table_def.name]} rows into '{table_def.name}'")
    return counts


async def _rollback(tx: DatabaseTransaction, step: str, error: BaseException) -> None:
    """Roll back after *error*; escalate if the rollback itself fails."""
    try:
        await tx.rollback()
    except Exception as rollback_error:
        logger.critical(
            f"Rollback failed after restore error in '{step}': {rollback_error}. "
            f"Original error: {error}. Data integrity cannot be guaranteed.",
            exc_info=True,
        )
        raise RollbackFailure(step, error, rollback_error) from rollback_error
    logger.debug(f"Restore transaction {RestorePhase.ROLLED_BACK.value} after '{step}'")


async def _close_transaction(tx: DatabaseTransaction) -> None:
    try:
        await tx.close()
    except Exception as e:
        logger.warning(f"Failed to release restore connection: {e}")


async def restore_backup(
    adapter: DatabaseClient,
    document: BackupDocument,
    timeout: float | None = None,
) -> RestoreSummary:
    """Replace the contents of all four tables with *document*.

    Runs strictly in order inside one transaction: clear every table,
    insert every table's rows, reset id sequences, commit.  Settings are
    only inserted when the document has some; otherwise the settings
    table is left empty.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        document: Validated backup document.
        timeout: Wall-clock budget in seconds for clearing and
            repopulating the tables.  COMMIT is not bounded by it.
            ``None`` disables the limit.

    Returns:
        Per-table counts of inserted rows.

    Raises:
        PersistenceError: A step failed and the transaction was rolled
            back; no data was changed.  ``phase`` names the failed step.
        RollbackFailure: A step failed and the rollback failed too.
    """
    phase = RestorePhase.VALIDATED

    try:
        tx = await adapter.begin()
    except Exception as e:
        logger.error(f"Could not open restore transaction: {e}", exc_info=True)
        raise PersistenceError(
            f"Could not open transaction: {e}", phase=_FAILED_STEP[phase]
        ) from e

    try:
        try:
            # COMMIT is never cancelled by the timeout
            async with asyncio.timeout(timeout):
                phase = RestorePhase.TRANSACTION_OPEN
                await _clear_tables(tx)
                phase = RestorePhase.TABLES_CLEARED
                counts = await _repopulate_tables(tx, document)
            phase = RestorePhase.TABLES_REPOPULATED
            await tx.commit()
        except Exception as e:
            step = _FAILED_STEP[phase]
            if isinstance(e, TimeoutError):
                message = f"Restore exceeded timeout of {timeout}s during '{step}'"
            else:
                message = f"Restore failed during '{step}': {e}"
            logger.error(message, exc_info=True)
            await _rollback(tx, step, e)
            raise PersistenceError(message, phase=step) from e
    finally:
        await _close_transaction(tx)

    logger.debug(f"Restore transaction {RestorePhase.COMMITTED.value}")
    summary = RestoreSummary(**counts)
    logger.info(
        "Database restored: "
        + ", ".join(f"{name}={count}" for name, count in summary.counts().items())
    )
    return summary


def _remove_upload(path: Path) -> str | None:
    """Best-effort delete of a temporary upload; returns a warning or ``None``."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        message = f"Failed to remove temporary upload {path}: {e}"
        logger.warning(message)
        warnings.warn(message, CleanupWarning, stacklevel=3)
        return message
    return None


async def restore_from_file(
    adapter: DatabaseClient,
    backup_path: str | Path,
    timeout: float | None = None,
    remove_after: bool = False,
) -> RestoreSummary:
    """Run the full restore pipeline on a backup file.

    Reads and parses the file, validates it, and restores it.  When
    *remove_after* is set (temporary uploads), the file is deleted
    whatever the outcome; a failed delete is reported in
    ``RestoreSummary.warnings`` and never changes the result.

    Raises:
        BackupError: If the file cannot be read.
        MalformedInputError: If the file is not valid JSON.
        ValidationError: If required collections are missing.
        PersistenceError: If the restore transaction failed.
    """
    path = Path(backup_path)
    cleanup_warnings: list[str] = []
    logger.debug(f"Restore {RestorePhase.RECEIVED.value}: {path}")

    try:
        try:
            raw = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise BackupError(f"Could not read backup file {path}: {e}") from e

        document = validate_document(parse_backup(raw))
        summary = await restore_backup(adapter, document, timeout=timeout)
    finally:
        if remove_after:
            problem = _remove_upload(path)
            if problem:
                cleanup_warnings.append(problem)

    summary.warnings.extend(cleanup_warnings)
    return summary


# ============================================================================
# Offline validation
# ============================================================================


def validate_backup(backup_path: str | Path) -> ValidationReport:
    """Validate a backup file without touching the database.

    Errors are problems that make a restore fail before any write:
    unreadable file, invalid JSON, missing or invalid required arrays.
    Warnings flag rows that would likely fail to insert: missing or
    duplicate ids, and JSON-text columns that are not JSON strings
    (restore writes them verbatim).

    Example:
        report = validate_backup("backups/backup.json")
        if not report.valid:
            raise SystemExit("\\n".join(report.errors))
    """
    errors: list[str] = []
    warnings_: list[str] = []

    try:
        data = parse_backup(Path(backup_path).read_bytes())
    except FileNotFoundError:
        return ValidationReport(valid=False, errors=[f"Backup file not found: {backup_path}"])
    except OSError as e:
        return ValidationReport(valid=False, errors=[f"Could not read backup file: {e}"])
    except MalformedInputError as e:
        return ValidationReport(valid=False, errors=[str(e)])

    for name in _invalid_fields(data):
        errors.append(f"Missing or invalid required field: {name}")

    if not isinstance(data, dict):
        return ValidationReport(valid=False, errors=errors)

    for key in data:
        if MARKETPLACE_SCHEMA.get(key) is None:
            warnings_.append(f"Unknown key '{key}' will be ignored")

    for table_def in MARKETPLACE_SCHEMA.tables:
        rows = data.get(table_def.name)
        if not isinstance(rows, list):
            continue

        seen: set = set()
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                continue
            label = f"{table_def.name}[{index}]"

            if table_def.pk not in row:
                warnings_.append(f"{label} has no '{table_def.pk}'")
            elif not isinstance(row[table_def.pk], (int, str)):
                warnings_.append(f"{label} has a non-scalar '{table_def.pk}'")
            elif row[table_def.pk] in seen:
                warnings_.append(f"{label} duplicates {table_def.pk}={row[table_def.pk]}")
            else:
                seen.add(row[table_def.pk])

            for field in table_def.json_text_fields:
                value = row.get(field)
                if value is None:
                    continue
                if not isinstance(value, str):
                    warnings_.append(f"{label}.{field} is not a JSON-encoded string")
                    continue
                try:
                    json.loads(value)
                except json.JSONDecodeError:
                    warnings_.append(f"{label}.{field} does not contain valid JSON")

    return ValidationReport(valid=not errors, errors=errors, warnings=warnings_)
