"""Database adapter factory.

Supports two configuration modes:
1. Profile mode (db.toml): named profiles, selected explicitly, via the
   ``DB_PROFILE`` env var, or implicitly when only one profile exists.
2. Legacy mode (``DATABASE_URL`` env var): a single database URL, used when
   no profiles are configured.

Both env var names accept a prefix (``--env-prefix APP_`` reads
``APP_DB_PROFILE`` / ``APP_DATABASE_URL``).
"""

import logging
import os
from urllib.parse import quote

from marketplace_backup.adapters.postgres import AsyncPostgresAdapter
from marketplace_backup.config.models import AppConfig, DatabaseProfile
from marketplace_backup.schema.comparator import validate_schema
from marketplace_backup.schema.introspector import SchemaIntrospector
from marketplace_backup.schema.models import ConnectionResult
from marketplace_backup.tables import expected_columns

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(
    config: AppConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> str:
    """Get active profile name.

    Priority:
    1. *profile_name* argument
    2. ``{env_prefix}DB_PROFILE`` env var
    3. The only profile, if exactly one is configured

    Raises:
        ProfileNotFoundError: If no profile can be selected or the
            selected one is not in the config.
    """
    name = profile_name or os.environ.get(f"{env_prefix}DB_PROFILE")
    if not name and len(config.profiles) == 1:
        name = next(iter(config.profiles))

    if not name:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            "No database profile selected.\n"
            f"Use --profile <name> or set {env_prefix}DB_PROFILE.\n"
            f"Available profiles: {available}"
        )

    if name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found. Available: {available}"
        )

    return name


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with the ``[YOUR-PASSWORD]`` placeholder replaced
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def resolve_database_url(
    config: AppConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> tuple[str | None, str]:
    """Resolve the database URL for profile mode or legacy mode.

    Returns:
        Tuple of (profile name or ``None`` in legacy mode, URL)

    Raises:
        ProfileNotFoundError: If neither a profile nor ``DATABASE_URL``
            is available.
    """
    if config.profiles or profile_name:
        name = get_active_profile_name(config, profile_name, env_prefix)
        return name, resolve_url(config.profiles[name])

    database_url = os.environ.get(f"{env_prefix}DATABASE_URL")
    if database_url:
        return None, database_url

    raise ProfileNotFoundError(
        "No database configuration found.\n"
        "Either:\n"
        "  1. Create db.toml with a [profiles.<name>] section\n"
        f"  2. Set {env_prefix}DATABASE_URL"
    )


async def get_adapter(
    config: AppConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> AsyncPostgresAdapter:
    """Create an adapter for the active profile (or legacy URL).

    Raises:
        ProfileNotFoundError: If no database configuration is found.
    """
    name, url = resolve_database_url(config, profile_name, env_prefix)
    logger.debug(f"Creating adapter for profile: {name or 'DATABASE_URL'}")
    return AsyncPostgresAdapter(url)


async def connect_and_validate(
    config: AppConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
) -> ConnectionResult:
    """Connect to the database and validate the marketplace schema.

    Never raises for configuration or connection problems; they are
    reported through ``ConnectionResult.error``.

    Example:
        >>> result = await connect_and_validate(config, "local")
        >>> if not result.success:
        ...     print(result.error)
    """
    try:
        name, url = resolve_database_url(config, profile_name, env_prefix)
    except ProfileNotFoundError as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    adapter = AsyncPostgresAdapter(url)
    try:
        actual_columns = await SchemaIntrospector(adapter).get_column_names()
    except Exception as e:
        return ConnectionResult(
            success=False,
            profile_name=name,
            error=f"Failed to connect to database: {e}",
        )
    finally:
        await adapter.close()

    validation = validate_schema(actual_columns, expected_columns())

    if validation.valid:
        return ConnectionResult(
            success=True,
            profile_name=name,
            schema_valid=True,
            schema_report=validation,
        )

    return ConnectionResult(
        success=False,
        profile_name=name,
        schema_valid=False,
        schema_report=validation,
        error=f"Schema validation failed: {validation.error_count} errors",
    )
