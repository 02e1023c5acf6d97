"""Configuration Registry - Defines all configuration keys with tier classification.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available in appusage.

Two-Tier System:
- Static Config (tier="static"): Requires restart to apply changes
  Examples: database location, log file path, brightness sentinel
- Dynamic Config (tier="dynamic"): Can be hot-reloaded without restart
  Examples: log level, trace output
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation and tier classification.

    Attributes:
        tier: "static" (restart required) or "dynamic" (hot-reloadable)
        value_type: Expected Python type (str, int, float, bool, list, dict)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        restart_required: Auto-derived from tier (True for static, False for dynamic)
        validator: Custom validation function (optional)
    """
    tier: Literal["static", "dynamic"]
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    restart_required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        self.restart_required = (self.tier == "static")


REGISTRY: dict[str, ConfigKey] = {
    # ===== DATABASE (Static - Storage identity) =====
    "database.directory": ConfigKey(
        tier="static",
        value_type=str,
        default="data",
        validator=lambda v: v.strip() != "",
    ),
    "database.name": ConfigKey(
        tier="static",
        value_type=str,
        default="app_usage_database",
        validator=lambda v: v.strip() != "" and "/" not in v,
    ),
    "database.wal_mode": ConfigKey(
        tier="static",
        value_type=bool,
        default=True,
    ),

    # ===== LOGGING (Static file path, Dynamic verbosity) =====
    "logging.file_path": ConfigKey(
        tier="static",
        value_type=str,
        default="",  # Console only
    ),
    "logging.level": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),

    # ===== COLLECTOR =====
    "collector.brightness_unavailable": ConfigKey(
        tier="static",
        value_type=int,
        default=-1,
        max_value=-1,  # Must stay outside the valid brightness range
    ),
    "collector.trace_enabled": ConfigKey(
        tier="dynamic",
        value_type=bool,
        default=True,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # bool is a subclass of int; keep the two apart
    if isinstance(value, bool) and config_key.value_type is not bool:
        return False, f"Expected type {config_key.value_type.__name__}, got bool"

    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    return {key: config_key.default for key, config_key in REGISTRY.items()}


def get_static_keys() -> list[str]:
    """Get list of all static configuration keys (restart required)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "static"]


def get_dynamic_keys() -> list[str]:
    """Get list of all dynamic configuration keys (hot-reloadable)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "dynamic"]
