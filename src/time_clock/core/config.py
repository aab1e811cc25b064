"""Configuration management for Time Clock."""

import copy
import getpass
import logging
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_NUMBER = {"type": "number", "minimum": 0}
_OPTIONAL_NUMBER = {"type": ["number", "null"], "minimum": 0}
_POSITIVE_INT = {"type": "integer", "minimum": 1}


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "general": {
            "data_dir": "~/.time-clock/data",
            "timezone": "UTC",
            "week_start": "monday",
            "user_id": None,
        },
        "calendar": {
            "working_days": ["monday", "tuesday", "wednesday", "thursday", "friday"],
            "holidays": [],
        },
        "policy": {
            "standard_work_hours": 8.0,
            "overtime_threshold": 8.0,
            "overtime_rate": 1.25,
            "double_overtime_threshold": 12.0,
            "double_overtime_rate": 1.5,
            "max_overtime_per_day": 4.0,
            "max_overtime_per_week": 20.0,
            "rest_day_rate": 1.5,
            "holiday_rate": 2.0,
            "hourly_rate": 0.0,
        },
        "engine": {
            "work_reminder_minutes": 60,
            "break_reminder_minutes": 45,
            "sync_interval_minutes": 5,
            "cleanup_interval_minutes": 60,
            "clock_in_tolerance_minutes": 5,
            "storage_retries": 3,
            "enable_work_reminders": True,
            "enable_break_reminders": True,
            "enable_overtime_alerts": True,
        },
        "sync": {
            "enabled": False,
            "group": "239.255.42.99",
            "port": 47999,
            "topic": "time_clock.engine",
        },
        "notifications": {
            "enabled": True,
            "backend": "console",
        },
        "maintenance": {
            "stale_entry_hours": 24,
        },
        "advanced": {
            "log_level": "WARNING",
            "log_file": None,
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "general": {
                "type": "object",
                "properties": {
                    "data_dir": {"type": "string"},
                    "timezone": {"type": "string"},
                    "week_start": {"type": "string", "enum": ["monday", "sunday"]},
                    "user_id": {"type": ["string", "null"]},
                },
            },
            "calendar": {
                "type": "object",
                "properties": {
                    "working_days": {
                        "type": "array",
                        "items": {
                            "type": "string",
                            "enum": [
                                "monday",
                                "tuesday",
                                "wednesday",
                                "thursday",
                                "friday",
                                "saturday",
                                "sunday",
                            ],
                        },
                        "uniqueItems": True,
                    },
                    "holidays": {
                        "type": "array",
                        "items": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
                    },
                },
            },
            "policy": {
                "type": "object",
                "properties": {
                    "standard_work_hours": {"type": "number", "exclusiveMinimum": 0},
                    "overtime_threshold": _NUMBER,
                    "overtime_rate": _NUMBER,
                    "double_overtime_threshold": _OPTIONAL_NUMBER,
                    "double_overtime_rate": _OPTIONAL_NUMBER,
                    "max_overtime_per_day": _OPTIONAL_NUMBER,
                    "max_overtime_per_week": _NUMBER,
                    "rest_day_rate": _NUMBER,
                    "holiday_rate": _NUMBER,
                    "hourly_rate": _NUMBER,
                },
            },
            "engine": {
                "type": "object",
                "properties": {
                    "work_reminder_minutes": _POSITIVE_INT,
                    "break_reminder_minutes": _POSITIVE_INT,
                    "sync_interval_minutes": _POSITIVE_INT,
                    "cleanup_interval_minutes": _POSITIVE_INT,
                    "clock_in_tolerance_minutes": {"type": "integer", "minimum": 0},
                    "storage_retries": {"type": "integer", "minimum": 0, "maximum": 10},
                    "enable_work_reminders": {"type": "boolean"},
                    "enable_break_reminders": {"type": "boolean"},
                    "enable_overtime_alerts": {"type": "boolean"},
                },
            },
            "sync": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "group": {"type": "string"},
                    "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "topic": {"type": "string", "minLength": 1},
                },
            },
            "notifications": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "backend": {"type": "string", "enum": ["console", "desktop", "none"]},
                },
            },
            "maintenance": {
                "type": "object",
                "properties": {
                    "stale_entry_hours": _POSITIVE_INT,
                },
            },
            "advanced": {
                "type": "object",
                "properties": {
                    "log_level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "log_file": {"type": ["string", "null"]},
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Load ``config_path`` (default ~/.time-clock/config.yml), creating it if absent."""
        if config_path is None:
            config_path = Path.home() / ".time-clock" / "config.yml"
        self.config_path = config_path
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self.validate()
            except ValueError as e:
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self.save()
                logger.warning(f"Invalid config moved to {backup_path}: {e}")
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self.save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge config with defaults so every key exists."""
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override into base dictionary (in-place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Look up ``key`` in dot notation, e.g. ``policy.overtime_rate``.

        Missing keys and explicit nulls both yield ``default``.
        """
        node: Any = self._config
        for part in key.split("."):
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        The previous configuration is restored if the new value is invalid.

        Args:
            key: Configuration key in dot notation
            value: Value to set

        Raises:
            ValueError: If configuration is invalid after setting
        """
        previous = copy.deepcopy(self._config)
        keys = key.split(".")
        config = self._config
        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
        try:
            self.validate()
        except ValueError:
            self._config = previous
            raise
        self.save()

    def validate(self) -> bool:
        """Validate configuration against schema.

        Returns:
            True if valid

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
            return True
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def reset(self) -> None:
        """Reset to default configuration."""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as dictionary."""
        return copy.deepcopy(self._config)

    def get_all_keys(self, prefix: str = "") -> list[str]:
        """Dotted paths of every leaf setting, optionally below ``prefix``."""
        node = self.get(prefix, {}) if prefix else self._config
        if not isinstance(node, dict):
            return []
        paths: list[str] = []
        for name, child in node.items():
            path = f"{prefix}.{name}" if prefix else name
            paths.extend(self.get_all_keys(path) if isinstance(child, dict) else [path])
        return paths

    @property
    def data_dir(self) -> Path:
        return Path(self.get("general.data_dir", "~/.time-clock/data")).expanduser()

    def resolve_user_id(self) -> str:
        """Configured user id, falling back to the login name."""
        user_id: Optional[str] = self.get("general.user_id")
        return user_id or getpass.getuser()
