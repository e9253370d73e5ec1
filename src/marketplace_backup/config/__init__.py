"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from marketplace_backup.config import load_config, AppConfig, DatabaseProfile
"""

from marketplace_backup.config.loader import load_config
from marketplace_backup.config.models import (
    AppConfig,
    BackupSettings,
    DatabaseProfile,
    SeedSettings,
)

__all__ = [
    "load_config",
    "AppConfig",
    "BackupSettings",
    "DatabaseProfile",
    "SeedSettings",
]
