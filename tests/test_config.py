"""Unit tests for configuration management."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from waypointdb.config import Environment, Settings, StorageBackendKind, get_settings, settings


class TestSettings:
    """Tests for Settings class."""

    def test_global_settings_use_testing_profile(self):
        """Test the suite runs against the testing profile."""
        assert settings.is_testing
        assert settings.storage_backend == StorageBackendKind.MEMORY
        assert settings.log_to_file is False

    def test_defaults(self, tmp_path: Path):
        """Test default values."""
        config = get_settings(environment="production", data_dir=tmp_path)

        assert config.storage_key_prefix == "waypoint:"
        assert config.storage_quota_bytes == 5 * 1024 * 1024
        assert config.default_daily_baseline == 10
        assert config.autolink_warn_ms == 50
        assert config.quota_enabled

    def test_database_path_defaults_to_data_dir(self, tmp_path: Path):
        """Test database path is placed under the data directory."""
        config = get_settings(environment="production", data_dir=tmp_path)

        assert config.database_path == tmp_path.resolve() / "waypoint.db"
        assert config.database_url == f"sqlite:///{config.database_path}"

    def test_explicit_database_path_kept(self, tmp_path: Path):
        """Test an explicit database path is not overridden."""
        custom = tmp_path / "custom.db"
        config = get_settings(data_dir=tmp_path, database_path=custom)

        assert config.database_path == custom

    def test_backup_dir_created(self, tmp_path: Path):
        """Test backup directory is created on access."""
        config = get_settings(data_dir=tmp_path)

        assert config.backup_dir == tmp_path.resolve() / "backups"
        assert config.backup_dir.is_dir()

    def test_zero_quota_disables_check(self, tmp_path: Path):
        """Test a zero quota disables enforcement."""
        config = get_settings(data_dir=tmp_path, storage_quota_bytes=0)

        assert not config.quota_enabled

    def test_negative_quota_rejected(self, tmp_path: Path):
        """Test negative quota is rejected."""
        with pytest.raises(ValidationError):
            Settings(data_dir=tmp_path, storage_quota_bytes=-1)  # type: ignore[call-arg]

    def test_log_level_normalized(self, tmp_path: Path):
        """Test log level names are upper-cased."""
        config = get_settings(environment="staging", data_dir=tmp_path, log_level="warning")

        assert config.log_level == "INFO"  # staging profile pins INFO

        with pytest.raises(ValidationError):
            get_settings(data_dir=tmp_path, log_level="loud")


class TestEnvironmentProfiles:
    """Tests for environment-specific defaults."""

    def test_production_profile(self, tmp_path: Path):
        """Test production forces JSON logs and at least INFO."""
        config = get_settings(environment="production", data_dir=tmp_path, log_level="DEBUG")

        assert config.is_production
        assert config.log_json is True
        assert config.log_level == "INFO"

    def test_production_keeps_stricter_level(self, tmp_path: Path):
        """Test production keeps a stricter configured level."""
        config = get_settings(environment="production", data_dir=tmp_path, log_level="ERROR")

        assert config.log_level == "ERROR"

    def test_development_profile(self, tmp_path: Path):
        """Test development enables debug logging."""
        config = get_settings(environment="development", data_dir=tmp_path)

        assert config.is_development
        assert config.log_level == "DEBUG"
        assert config.log_json is False
        assert config.storage_backend == StorageBackendKind.SQLITE

    def test_testing_profile(self, tmp_path: Path):
        """Test testing profile selects in-memory storage."""
        config = get_settings(environment=Environment.TESTING, data_dir=tmp_path)

        assert config.storage_backend == StorageBackendKind.MEMORY
        assert config.log_level == "ERROR"
        assert config.log_to_file is False

    def test_environment_from_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test environment is read from the environment."""
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))

        config = Settings()  # type: ignore[call-arg]

        assert config.is_staging
        assert config.log_json is True
