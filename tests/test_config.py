"""Tests for configuration manager."""

import tempfile
from datetime import date, timedelta
from pathlib import Path

import pytest  # type: ignore[import-not-found]
import yaml  # type: ignore[import-untyped]

from time_clock.core.clock import ClockService
from time_clock.core.config import ConfigManager
from time_clock.core.models import OvertimePolicy
from time_clock.engine.session import EngineSettings
from time_clock.notifications.notifier import ConsoleNotifier, NullNotifier, create_notifier


@pytest.fixture  # type: ignore[misc]
def temp_config_path():
    """Create a temporary config file path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "config.yml"


class TestConfigManager:
    """Test ConfigManager."""

    def test_initialization_creates_default_config(self, temp_config_path: Path) -> None:
        """Test that initialization creates default configuration."""
        assert not temp_config_path.exists()

        config = ConfigManager(temp_config_path)

        assert temp_config_path.exists()
        assert config.get("version") == "1.0"
        assert config.get("general.data_dir") == "~/.time-clock/data"
        assert config.get("policy.standard_work_hours") == 8.0
        assert config.get("sync.enabled") is False

    def test_merge_with_defaults(self, temp_config_path: Path) -> None:
        """Test that partial config is merged with defaults."""
        with open(temp_config_path, "w") as f:
            yaml.dump({"version": "1.0", "policy": {"overtime_rate": 1.5}}, f)

        config = ConfigManager(temp_config_path)

        assert config.get("policy.overtime_rate") == 1.5
        assert config.get("policy.standard_work_hours") == 8.0
        assert config.get("general.timezone") == "UTC"

    def test_get_missing_key_returns_default(self, temp_config_path: Path) -> None:
        """Test default for unknown keys."""
        config = ConfigManager(temp_config_path)

        assert config.get("nonexistent.key", "fallback") == "fallback"
        assert config.get("general.timezone.deeper", "x") == "x"

    def test_set_persists(self, temp_config_path: Path) -> None:
        """Test setting a value writes it to disk."""
        config = ConfigManager(temp_config_path)
        config.set("engine.sync_interval_minutes", 10)

        reloaded = ConfigManager(temp_config_path)
        assert reloaded.get("engine.sync_interval_minutes") == 10

    def test_set_invalid_value_rolls_back(self, temp_config_path: Path) -> None:
        """Test invalid values are rejected and the old value kept."""
        config = ConfigManager(temp_config_path)

        with pytest.raises(ValueError):
            config.set("general.week_start", "wednesday")

        assert config.get("general.week_start") == "monday"

    def test_invalid_file_is_backed_up(self, temp_config_path: Path) -> None:
        """Test an invalid config file is moved aside and replaced by defaults."""
        with open(temp_config_path, "w") as f:
            yaml.dump({"version": "1.0", "sync": {"port": 0}}, f)

        with pytest.raises(ValueError):
            ConfigManager(temp_config_path)

        assert temp_config_path.with_suffix(".yml.backup").exists()
        assert ConfigManager(temp_config_path).get("sync.port") == 47999

    def test_reset(self, temp_config_path: Path) -> None:
        """Test reset restores defaults."""
        config = ConfigManager(temp_config_path)
        config.set("policy.hourly_rate", 42.0)
        config.reset()

        assert config.get("policy.hourly_rate") == 0.0

    def test_get_all_keys(self, temp_config_path: Path) -> None:
        """Test listing keys in dot notation."""
        keys = ConfigManager(temp_config_path).get_all_keys()

        assert "general.timezone" in keys
        assert "policy.max_overtime_per_week" in keys
        assert "engine.storage_retries" in keys

    def test_resolve_user_id(self, temp_config_path: Path) -> None:
        """Test a configured user id wins over the login name."""
        config = ConfigManager(temp_config_path)
        config.set("general.user_id", "alice")

        assert config.resolve_user_id() == "alice"

    def test_data_dir_expands_home(self, temp_config_path: Path) -> None:
        """Test the data directory is expanded."""
        assert "~" not in str(ConfigManager(temp_config_path).data_dir)


class TestBuildFromConfig:
    """Test components built from configuration."""

    def test_policy_from_config(self, temp_config_path: Path) -> None:
        """Test policy section maps onto OvertimePolicy."""
        config = ConfigManager(temp_config_path)
        config.set("policy.standard_work_hours", 7.5)

        policy = OvertimePolicy.from_config(config)

        assert policy.standard_work_hours == 7.5
        assert policy.overtime_rate == 1.25

    def test_engine_settings_from_config(self, temp_config_path: Path) -> None:
        """Test engine section maps onto EngineSettings."""
        config = ConfigManager(temp_config_path)
        config.set("engine.work_reminder_minutes", 30)
        config.set("policy.hourly_rate", 25)

        settings = EngineSettings.from_config(config)

        assert settings.work_reminder_interval == timedelta(minutes=30)
        assert settings.sync_interval == timedelta(minutes=5)
        assert settings.hourly_rate == 25.0

    def test_clock_from_config(self, temp_config_path: Path) -> None:
        """Test calendar settings map onto ClockService."""
        config = ConfigManager(temp_config_path)
        config.set("general.timezone", "Europe/Berlin")
        config.set("calendar.holidays", ["2025-12-25"])

        clock = ClockService.from_config(config)

        assert clock.timezone_name == "Europe/Berlin"
        assert not clock.is_working_day(date(2025, 12, 25))

    def test_notifier_from_config(self, temp_config_path: Path) -> None:
        """Test the notifier backend selection."""
        config = ConfigManager(temp_config_path)
        assert isinstance(create_notifier(config), ConsoleNotifier)

        config.set("notifications.enabled", False)
        assert isinstance(create_notifier(config), NullNotifier)
