"""Tests for profile resolution and adapter creation."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from marketplace_backup.config.models import AppConfig, DatabaseProfile
from marketplace_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_active_profile_name,
    get_adapter,
    resolve_database_url,
    resolve_url,
)
from marketplace_backup.tables import expected_columns


def _config(*names: str) -> AppConfig:
    return AppConfig(
        profiles={
            name: DatabaseProfile(url=f"postgresql://localhost/{name}") for name in names
        }
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("DB_PROFILE", "DATABASE_URL", "APP_DB_PROFILE", "APP_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)


class TestGetActiveProfileName:
    def test_explicit_argument_wins(self, monkeypatch):
        monkeypatch.setenv("DB_PROFILE", "prod")

        assert get_active_profile_name(_config("local", "prod"), "local") == "local"

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("DB_PROFILE", "prod")

        assert get_active_profile_name(_config("local", "prod")) == "prod"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_DB_PROFILE", "prod")

        assert get_active_profile_name(_config("local", "prod"), env_prefix="APP_") == "prod"

    def test_single_profile_is_implicit(self):
        assert get_active_profile_name(_config("local")) == "local"

    def test_ambiguous_raises(self):
        with pytest.raises(ProfileNotFoundError, match="Available profiles: local, prod"):
            get_active_profile_name(_config("local", "prod"))

    def test_unknown_profile_raises(self):
        with pytest.raises(ProfileNotFoundError, match="'staging' not found"):
            get_active_profile_name(_config("local"), "staging")


class TestResolveUrl:
    def test_password_placeholder(self):
        profile = DatabaseProfile(
            url="postgresql://app:[YOUR-PASSWORD]@db/marketplace",
            db_password="p@ss/word",
        )

        assert resolve_url(profile) == "postgresql://app:p%40ss%2Fword@db/marketplace"

    def test_no_placeholder(self):
        profile = DatabaseProfile(url="postgresql://app:x@db/m", db_password="ignored")

        assert resolve_url(profile) == "postgresql://app:x@db/m"


class TestResolveDatabaseUrl:
    def test_profile_mode(self):
        assert resolve_database_url(_config("local")) == (
            "local",
            "postgresql://localhost/local",
        )

    def test_legacy_database_url(self, monkeypatch):
        monkeypatch.setenv("APP_DATABASE_URL", "postgresql://legacy/db")

        assert resolve_database_url(AppConfig(), env_prefix="APP_") == (
            None,
            "postgresql://legacy/db",
        )

    def test_nothing_configured(self):
        with pytest.raises(ProfileNotFoundError, match="No database configuration"):
            resolve_database_url(AppConfig())


class TestGetAdapter:
    async def test_creates_adapter_for_profile(self):
        with patch("marketplace_backup.factory.AsyncPostgresAdapter") as mock_cls:
            adapter = await get_adapter(_config("local"))

        mock_cls.assert_called_once_with("postgresql://localhost/local")
        assert adapter is mock_cls.return_value


class TestConnectAndValidate:
    def _patch_introspection(self, columns=None, error=None):
        introspector = MagicMock()
        introspector.get_column_names = AsyncMock(return_value=columns, side_effect=error)
        adapter = MagicMock()
        adapter.close = AsyncMock()
        return (
            patch("marketplace_backup.factory.AsyncPostgresAdapter", return_value=adapter),
            patch("marketplace_backup.factory.SchemaIntrospector", return_value=introspector),
            adapter,
        )

    async def test_valid_schema(self):
        adapter_patch, intro_patch, adapter = self._patch_introspection(
            columns={**expected_columns(), "SessionStore": {"sid"}}
        )
        with adapter_patch, intro_patch:
            result = await connect_and_validate(_config("local"))

        assert result.success
        assert result.schema_valid
        assert result.profile_name == "local"
        assert result.schema_report.extra_tables == ["SessionStore"]
        adapter.close.assert_awaited_once()

    async def test_missing_table(self):
        columns = expected_columns()
        del columns["settings"]
        adapter_patch, intro_patch, _ = self._patch_introspection(columns=columns)
        with adapter_patch, intro_patch:
            result = await connect_and_validate(_config("local"))

        assert not result.success
        assert result.schema_report.missing_tables == ["settings"]
        assert "1 errors" in result.error

    async def test_connection_error(self):
        adapter_patch, intro_patch, adapter = self._patch_introspection(
            error=OSError("connection refused")
        )
        with adapter_patch, intro_patch:
            result = await connect_and_validate(_config("local"))

        assert not result.success
        assert "connection refused" in result.error
        adapter.close.assert_awaited_once()

    async def test_no_configuration(self):
        result = await connect_and_validate(AppConfig())

        assert not result.success
        assert "No database configuration" in result.error
