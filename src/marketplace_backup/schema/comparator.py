"""Schema comparison using set operations.

Compares expected columns against actual columns from the database.
Pure logic -- no I/O, no database connections.

Usage:
    from marketplace_backup.schema.comparator import validate_schema
    from marketplace_backup.tables import expected_columns

    actual = await SchemaIntrospector(adapter).get_column_names()
    result = validate_schema(actual, expected_columns())
    if not result.valid:
        print(result.format_report())
"""

from marketplace_backup.schema.models import ColumnDiff, SchemaValidationResult


def validate_schema(
    actual_columns: dict[str, set[str]],
    expected_columns: dict[str, set[str]],
) -> SchemaValidationResult:
    """Validate actual database schema against expected columns.

    Performs pure set operations to find:
    - Missing tables: Tables in *expected_columns* but not in *actual_columns*
    - Missing columns: Columns in *expected_columns* but not in the actual table
    - Extra tables: Tables in *actual_columns* but not in *expected_columns*
      (warning only -- does not affect ``valid`` status)

    Examples:
        >>> validate_schema({"users": {"id", "username"}}, {"users": {"id", "username"}}).valid
        True

        >>> result = validate_schema({"users": {"id"}}, {"users": {"id", "role"}})
        >>> result.missing_columns[0].column
        'role'
    """
    actual_tables: set[str] = set(actual_columns.keys())
    expected_tables: set[str] = set(expected_columns.keys())

    missing_tables: list[str] = sorted(expected_tables - actual_tables)
    extra_tables: list[str] = sorted(actual_tables - expected_tables)

    missing_columns: list[ColumnDiff] = []
    for table_name in sorted(expected_tables & actual_tables):
        missing_cols: set[str] = expected_columns[table_name] - actual_columns[table_name]

        for col_name in sorted(missing_cols):
            missing_columns.append(
                ColumnDiff(
                    table=table_name,
                    column=col_name,
                    message=f"Column '{col_name}' missing from table '{table_name}'",
                )
            )

    return SchemaValidationResult(
        valid=not missing_tables and not missing_columns,
        missing_tables=missing_tables,
        missing_columns=missing_columns,
        extra_tables=extra_tables,
    )
