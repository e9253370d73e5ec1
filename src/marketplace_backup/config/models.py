"""Pydantic models for application configuration."""

from pydantic import BaseModel, Field

from marketplace_backup.tables import DEFAULT_PRICE_COEFFICIENT

# Upload ceiling of the marketplace backend's multipart parser
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class BackupSettings(BaseModel):
    """``[backup]`` section: upload limits and restore behaviour."""

    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    restore_timeout_seconds: float | None = Field(default=60.0, gt=0)
    upload_dir: str = "uploads"
    backups_dir: str = "backups"


class SeedSettings(BaseModel):
    """``[seed]`` section: rows created by ``init-db`` on an empty store."""

    admin_username: str = "admin"
    admin_password: str = "123456"
    payment_info: str = (
        "Реквизиты для оплаты:\nБанковская карта: 1234 5678 9012 3456"
    )
    price_coefficient: float = DEFAULT_PRICE_COEFFICIENT


class AppConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)
