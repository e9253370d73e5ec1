"""Schema introspection and validation.

Usage:
    from marketplace_backup.schema import SchemaIntrospector, validate_schema
"""

from marketplace_backup.schema.comparator import validate_schema
from marketplace_backup.schema.introspector import SchemaIntrospector
from marketplace_backup.schema.models import (
    ColumnDiff,
    ConnectionResult,
    SchemaValidationResult,
)

__all__ = [
    "validate_schema",
    "SchemaIntrospector",
    "SchemaValidationResult",
    "ColumnDiff",
    "ConnectionResult",
]
