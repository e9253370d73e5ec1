"""Command-line interface for marketplace backup and restore.

Usage:
    marketplace-backup profiles
    marketplace-backup check --profile local
    marketplace-backup init-db
    marketplace-backup export -o backups/today.json
    marketplace-backup restore backups/today.json --yes
    marketplace-backup validate backups/today.json
    marketplace-backup serve --port 3000

Commands:
    profiles  - List available profiles
    check     - Connect to database and validate schema
    init-db   - Create tables and seed the default admin and settings
    export    - Export all tables to a JSON backup file
    restore   - Replace all tables with the contents of a backup file
    validate  - Validate a backup file offline
    serve     - Run the HTTP API
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.table import Table

from marketplace_backup.backup.backup_restore import (
    export_backup,
    restore_from_file,
    validate_backup,
    write_backup_file,
)
from marketplace_backup.backup.models import MARKETPLACE_SCHEMA
from marketplace_backup.config.loader import load_config
from marketplace_backup.config.models import AppConfig
from marketplace_backup.errors import (
    BackupError,
    MalformedInputError,
    PersistenceError,
    RollbackFailure,
    ValidationError,
)
from marketplace_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_active_profile_name,
    get_adapter,
)
from marketplace_backup.logging_setup import configure_logging
from marketplace_backup.seed import initialize_database

console = Console()

# Exit code when a restore could not be rolled back
EXIT_INTEGRITY_UNKNOWN = 2


def _load(args: argparse.Namespace) -> AppConfig | None:
    """Load config, printing the problem and returning ``None`` on failure."""
    try:
        return load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


def _summary_table(title: str, counts: dict[str, int]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Table", style="dim")
    table.add_column("Rows", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    return table


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_check(args: argparse.Namespace, config: AppConfig) -> int:
    """Async implementation for check command.

    Returns:
        0 on valid schema, 1 on failure.
    """
    console.print("Connecting to database...", style="dim")

    result = await connect_and_validate(config, args.profile, args.env_prefix)

    if result.success:
        console.print()
        console.print(
            f"[bold green]v[/bold green] Connected to profile: "
            f"[bold cyan]{result.profile_name or 'DATABASE_URL'}[/bold cyan]"
        )
        console.print("  Schema validation: [green]PASSED[/green]")
        if result.schema_report and result.schema_report.extra_tables:
            console.print(
                f"  Extra tables: [yellow]"
                f"{', '.join(result.schema_report.extra_tables)}[/yellow]"
            )
        return 0

    console.print()
    console.print(f"[bold red]x[/bold red] {result.error}")
    if result.schema_report:
        console.print("\n[bold]Schema validation report:[/bold]")
        console.print(result.schema_report.format_report())
        console.print(
            "[dim]Run[/dim] [cyan]marketplace-backup init-db[/cyan] "
            "[dim]to create missing tables.[/dim]"
        )
    return 1


async def _async_init_db(args: argparse.Namespace, config: AppConfig) -> int:
    """Async implementation for init-db command."""
    adapter = await get_adapter(config, args.profile, args.env_prefix)
    try:
        created = await initialize_database(adapter, config.seed)
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Initialisation failed: {e}")
        return 1
    finally:
        await adapter.close()

    console.print("[bold green]v[/bold green] Tables ready")
    if created["admin_created"]:
        console.print(f"  Default admin: [cyan]{config.seed.admin_username}[/cyan]")
    if created["settings_created"]:
        console.print("  Default settings created")
    return 0


async def _async_export(args: argparse.Namespace, config: AppConfig) -> int:
    """Async implementation for export command."""
    adapter = await get_adapter(config, args.profile, args.env_prefix)
    try:
        document = await export_backup(adapter)
    except PersistenceError as e:
        console.print(f"[bold red]x[/bold red] Export failed: {e}")
        return 1
    finally:
        await adapter.close()

    try:
        path = write_backup_file(document, args.output, config.backup.backups_dir)
    except OSError as e:
        console.print(f"[bold red]x[/bold red] Could not write backup file: {e}")
        return 1

    console.print(
        _summary_table(
            "Exported",
            {name: len(document.rows(name)) for name in MARKETPLACE_SCHEMA.table_names},
        )
    )
    console.print(f"[bold green]v[/bold green] Backup written to [cyan]{path}[/cyan]")
    return 0


async def _async_restore(args: argparse.Namespace, config: AppConfig) -> int:
    """Async implementation for restore command."""
    timeout = args.timeout if args.timeout is not None else config.backup.restore_timeout_seconds
    adapter = await get_adapter(config, args.profile, args.env_prefix)
    try:
        summary = await restore_from_file(adapter, args.backup_path, timeout=timeout)
    except (MalformedInputError, ValidationError) as e:
        console.print(f"[bold red]x[/bold red] Invalid backup: {e}")
        console.print("  No data was changed.")
        return 1
    except RollbackFailure as e:
        console.print("[bold red]!! RESTORE AND ROLLBACK FAILED !![/bold red]")
        console.print(f"[red]{e}[/red]")
        console.print(
            "[bold red]Data integrity cannot be guaranteed. "
            "Inspect the database before using it.[/bold red]"
        )
        return EXIT_INTEGRITY_UNKNOWN
    except PersistenceError as e:
        console.print(f"[bold red]x[/bold red] Restore failed during '{e.phase}': {e}")
        console.print("  Transaction rolled back. No data was changed.")
        return 1
    except BackupError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await adapter.close()

    console.print(_summary_table("Restored", summary.counts()))
    for warning in summary.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    console.print("[bold green]v[/bold green] Database restored")
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def _run_async(args: argparse.Namespace, impl) -> int:
    config = _load(args)
    if config is None:
        return 1
    try:
        return asyncio.run(impl(args, config))
    except ProfileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


def cmd_check(args: argparse.Namespace) -> int:
    """Connect to database and validate schema."""
    return _run_async(args, _async_check)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create tables and seed defaults."""
    return _run_async(args, _async_init_db)


def cmd_export(args: argparse.Namespace) -> int:
    """Export all tables to a JSON file."""
    return _run_async(args, _async_export)


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore all tables from a JSON file, after confirmation."""
    if not args.yes:
        console.print(f"[yellow]This will DELETE ALL DATA and restore from:[/yellow] {args.backup_path}")
        response = console.input("Continue? \\[y/N] ")
        if response.lower() not in ("y", "yes"):
            console.print("Cancelled.")
            return 0
    return _run_async(args, _async_restore)


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a backup file.

    Reads only the local file -- no database calls.
    """
    report = validate_backup(args.backup_path)

    console.print(f"Validating: {args.backup_path}")

    if report.errors:
        console.print(f"\n[bold red]INVALID[/bold red] - Found {len(report.errors)} errors:")
        for error in report.errors:
            console.print(f"   - {error}")

    if report.warnings:
        console.print(f"\n[yellow]Found {len(report.warnings)} warnings:[/yellow]")
        for warning in report.warnings:
            console.print(f"   - {warning}")

    if report.valid:
        suffix = " (with warnings)" if report.warnings else ""
        console.print(f"\n[bold green]v[/bold green] Backup is valid{suffix}")
        return 0

    console.print("\n[bold red]x[/bold red] Backup is invalid")
    return 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.
    """
    config = _load(args)
    if config is None:
        return 1

    if not config.profiles:
        console.print("[yellow]No profiles configured.[/yellow]")
        return 0

    try:
        current = get_active_profile_name(config, env_prefix=args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(marker, name, profile.description or "")

    console.print(table)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from marketplace_backup.server import create_app

    config = _load(args)
    if config is None:
        return 1

    app = create_app(config, profile_name=args.profile, env_prefix=args.env_prefix)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marketplace-backup",
        description="Marketplace database backup and restore",
    )
    parser.add_argument("--config", "-c", help="Path to db.toml")
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_profile(p: argparse.ArgumentParser) -> None:
        p.add_argument("--profile", "-p", help="Database profile from db.toml")

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_check = subparsers.add_parser("check", help="Connect to database and validate schema")
    add_profile(p_check)
    p_check.set_defaults(func=cmd_check)

    p_init = subparsers.add_parser("init-db", help="Create tables and seed default rows")
    add_profile(p_init)
    p_init.set_defaults(func=cmd_init_db)

    p_export = subparsers.add_parser("export", help="Export all tables to a JSON file")
    add_profile(p_export)
    p_export.add_argument(
        "--output", "-o",
        help="Output file path (default: <backups_dir>/backup-{timestamp}.json)",
    )
    p_export.set_defaults(func=cmd_export)

    p_restore = subparsers.add_parser("restore", help="Replace all tables from a backup file")
    add_profile(p_restore)
    p_restore.add_argument("backup_path", help="Path to backup JSON file")
    p_restore.add_argument(
        "--timeout",
        type=float,
        help="Restore transaction timeout in seconds (default: from config)",
    )
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_restore.set_defaults(func=cmd_restore)

    p_validate = subparsers.add_parser("validate", help="Validate a backup file")
    p_validate.add_argument("backup_path", help="Path to backup JSON file")
    p_validate.set_defaults(func=cmd_validate)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    add_profile(p_serve)
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=3000)
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, console=console)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
