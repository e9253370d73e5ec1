"""Exceptions raised by the backup export/restore pipeline.

Usage:
    from marketplace_backup.errors import BackupError, ValidationError

    try:
        summary = await restore_backup(adapter, document)
    except ValidationError as e:
        print(e.missing_fields)
"""


class BackupError(Exception):
    """Base class for all backup pipeline errors."""

    pass


class MalformedInputError(BackupError):
    """Raised when an uploaded backup is not valid JSON."""

    pass


class ValidationError(BackupError):
    """Raised when a parsed backup is missing required collections.

    Every offending field is collected before raising, so a caller sees
    all problems in one response.
    """

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Missing or invalid required fields: {', '.join(self.missing_fields)}"
        )


class PersistenceError(BackupError):
    """Raised when a read, write, or transaction step fails at the store.

    Attributes:
        phase: Pipeline phase in which the failure occurred
            (e.g. ``"export"``, ``"clear"``, ``"repopulate"``, ``"commit"``).
    """

    def __init__(self, message: str, phase: str) -> None:
        self.phase = phase
        super().__init__(message)


class RollbackFailure(PersistenceError):
    """Raised when rolling back a failed restore itself fails.

    The store may be left in a state the pipeline cannot reason about.

    Attributes:
        original_error: The error that triggered the rollback.
        rollback_error: The error raised by the rollback call.
    """

    def __init__(
        self,
        phase: str,
        original_error: BaseException,
        rollback_error: BaseException,
    ) -> None:
        self.original_error = original_error
        self.rollback_error = rollback_error
        super().__init__(
            f"Rollback failed after error in phase '{phase}': {rollback_error} "
            f"(original error: {original_error}). Data integrity cannot be guaranteed.",
            phase=phase,
        )


class CleanupWarning(UserWarning):
    """Temporary upload could not be removed. Never changes restore outcome."""

    pass
