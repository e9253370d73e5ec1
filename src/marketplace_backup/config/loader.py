"""Configuration loading from a TOML file."""

import os
import tomllib
from pathlib import Path

from marketplace_backup.config.models import AppConfig

CONFIG_ENV_VAR = "MARKETPLACE_BACKUP_CONFIG"
DEFAULT_CONFIG_FILE = "db.toml"


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load application configuration from a TOML file.

    Resolution order: *config_path*, then the ``MARKETPLACE_BACKUP_CONFIG``
    env var, then ``db.toml`` in the current directory.  A missing default
    file yields an all-defaults config (no profiles), so the legacy
    ``DATABASE_URL`` mode keeps working without a file.

    Args:
        config_path: Explicit path to the TOML file.

    Returns:
        AppConfig with profiles, backup and seed settings.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist.
        ValueError: If the file is not valid TOML or fails validation.
    """
    explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
    path = Path(explicit) if explicit else Path.cwd() / DEFAULT_CONFIG_FILE

    if not path.exists():
        if explicit:
            raise FileNotFoundError(
                f"Config file not found: {path}\n"
                f"Copy db.toml.example to {path.name} and configure your profiles."
            )
        return AppConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    return AppConfig.model_validate(data)
