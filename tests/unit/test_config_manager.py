"""Unit tests for configuration manager."""

import pytest
from pathlib import Path
import tempfile
import os

from src.appusage.config.manager import ConfigManager, initialize_config, get_config_manager
from src.appusage.persistence.db import DatabaseConfig, SCHEMA_VERSION


def _write_toml(content: str) -> Path:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.toml', delete=False) as f:
        f.write(content)
        return Path(f.name)


class TestConfigManagerInitialization:
    """Test ConfigManager initialization."""

    def test_init_with_defaults(self):
        """ConfigManager should initialize with default paths."""
        manager = ConfigManager()
        assert manager.config_file == Path("config/default.toml")
        assert manager.env_file == Path(".env")
        assert manager.static_config == {}
        assert manager.dynamic_config == {}

    def test_init_with_custom_paths(self):
        """ConfigManager should accept custom file paths."""
        config_path = Path("custom/config.toml")
        env_path = Path("custom/.env")
        manager = ConfigManager(config_file=config_path, env_file=env_path)
        assert manager.config_file == config_path
        assert manager.env_file == env_path


class TestStaticConfigLoading:
    """Test static configuration loading."""

    def test_load_static_config_from_file(self):
        """Should load static config from TOML file."""
        manager = ConfigManager()
        config = manager.load_static_config()

        assert "database.directory" in config
        assert "database.name" in config
        assert "logging.file_path" in config
        assert "logging.level" not in config  # dynamic key
        assert manager.static_config == config

    def test_static_config_defaults(self):
        """Missing config file falls back to registry defaults."""
        manager = ConfigManager(config_file=Path("does/not/exist.toml"))
        config = manager.load_static_config()

        assert config["database.name"] == "app_usage_database"
        assert config["database.directory"] == "data"
        assert config["collector.brightness_unavailable"] == -1

    def test_static_config_toml_values(self):
        """TOML values override defaults."""
        temp_file = _write_toml('[database]\nname = "launches"\ndirectory = "/tmp/usage"\n')
        try:
            manager = ConfigManager(config_file=temp_file)
            config = manager.load_static_config()
            assert config["database.name"] == "launches"
            assert config["database.directory"] == "/tmp/usage"
        finally:
            temp_file.unlink()

    def test_static_config_validation(self):
        """A brightness sentinel inside the valid range is rejected."""
        temp_file = _write_toml('[collector]\nbrightness_unavailable = 0\n')
        try:
            manager = ConfigManager(config_file=temp_file)
            with pytest.raises(ValueError, match="above maximum"):
                manager.load_static_config()
        finally:
            temp_file.unlink()

    def test_env_variable_override(self):
        """Environment variables should override TOML values."""
        os.environ["APPUSAGE_DATABASE_DIRECTORY"] = "custom/dir"
        try:
            manager = ConfigManager()
            config = manager.load_static_config()
            assert config["database.directory"] == "custom/dir"
        finally:
            del os.environ["APPUSAGE_DATABASE_DIRECTORY"]

    def test_env_variable_parse_error(self, monkeypatch):
        """Unparseable env values raise ValueError."""
        monkeypatch.setenv("APPUSAGE_COLLECTOR_BRIGHTNESS_UNAVAILABLE", "dim")
        manager = ConfigManager()
        with pytest.raises(ValueError, match="APPUSAGE_COLLECTOR_BRIGHTNESS_UNAVAILABLE"):
            manager.load_static_config()


class TestDynamicConfigLoading:
    """Test dynamic configuration loading."""

    def test_dynamic_config_defaults_values(self):
        """Dynamic config should use defaults from registry."""
        manager = ConfigManager()
        config = manager.load_dynamic_config_defaults()

        assert config["logging.level"] == "INFO"
        assert config["collector.trace_enabled"] is True
        assert manager.dynamic_config == config

    def test_dynamic_config_validation(self):
        """Dynamic config loading should validate values."""
        temp_file = _write_toml('[logging]\nlevel = "LOUD"\n')
        try:
            manager = ConfigManager(config_file=temp_file)
            with pytest.raises(ValueError, match="Custom validation failed"):
                manager.load_dynamic_config_defaults()
        finally:
            temp_file.unlink()


class TestConfigGet:
    """Test configuration value retrieval."""

    def test_get_static_value(self):
        manager = ConfigManager()
        manager.load_static_config()
        assert manager.get("database.name") == "app_usage_database"

    def test_get_dynamic_value(self):
        manager = ConfigManager()
        manager.load_static_config()
        manager.load_dynamic_config_defaults()
        assert manager.get("logging.level") == "INFO"

    def test_get_nonexistent_key(self):
        """Should raise KeyError for nonexistent key."""
        manager = ConfigManager()
        manager.load_static_config()

        with pytest.raises(KeyError):
            manager.get("nonexistent.key")

    def test_database_config(self):
        """database_config() builds the storage settings."""
        temp_file = _write_toml('[database]\ndirectory = "var/db"\nwal_mode = false\n')
        try:
            manager = ConfigManager(config_file=temp_file)
            manager.load_static_config()
            db_config = manager.database_config()
        finally:
            temp_file.unlink()

        assert db_config == DatabaseConfig(
            name="app_usage_database",
            version=SCHEMA_VERSION,
            directory=Path("var/db"),
            wal_mode=False,
        )
        assert db_config.path == Path("var/db/app_usage_database.db")


class TestHotReload:
    """Test hot-reload functionality."""

    @pytest.mark.asyncio
    async def test_update_dynamic_config(self):
        manager = ConfigManager()
        manager.load_static_config()
        manager.load_dynamic_config_defaults()

        await manager.update_dynamic_config("logging.level", "DEBUG")

        assert manager.dynamic_config["logging.level"] == "DEBUG"
        assert manager.get("logging.level") == "DEBUG"

    @pytest.mark.asyncio
    async def test_update_static_config_fails(self):
        """Should reject updates to static config."""
        manager = ConfigManager()
        manager.load_static_config()

        with pytest.raises(KeyError, match="Cannot hot-update static config"):
            await manager.update_dynamic_config("database.directory", "elsewhere")

    @pytest.mark.asyncio
    async def test_update_with_validation_failure(self):
        manager = ConfigManager()
        manager.load_static_config()
        manager.load_dynamic_config_defaults()

        with pytest.raises(ValueError, match="Expected type bool"):
            await manager.update_dynamic_config("collector.trace_enabled", "yes")

    @pytest.mark.asyncio
    async def test_subscriber_notification(self):
        """Should notify subscribers on config update."""
        manager = ConfigManager()
        manager.load_static_config()
        manager.load_dynamic_config_defaults()

        notifications = []

        def subscriber(key: str, value):
            notifications.append((key, value))

        manager.subscribe(subscriber)
        await manager.update_dynamic_config("logging.level", "WARNING")

        assert notifications == [("logging.level", "WARNING")]

    @pytest.mark.asyncio
    async def test_async_and_failing_subscribers(self):
        """Async subscribers are awaited; a failing subscriber doesn't stop the rest."""
        manager = ConfigManager()
        manager.load_static_config()
        manager.load_dynamic_config_defaults()

        notifications = []

        def broken(key, value):
            raise RuntimeError("boom")

        async def async_subscriber(key, value):
            notifications.append((key, value))

        manager.subscribe(broken)
        manager.subscribe(async_subscriber)
        await manager.update_dynamic_config("collector.trace_enabled", False)

        assert notifications == [("collector.trace_enabled", False)]


class TestGlobalInstance:
    """Test global config manager instance."""

    def test_initialize_config(self):
        manager = initialize_config()
        assert isinstance(manager, ConfigManager)
        assert get_config_manager() is manager
        assert len(manager.static_config) > 0
        assert len(manager.dynamic_config) > 0


class TestTOMLFlattening:
    """Test TOML structure flattening."""

    def test_flatten_nested_structure(self):
        manager = ConfigManager()

        nested = {
            "database": {"name": "launches", "wal_mode": True},
            "logging": {"level": "DEBUG"},
        }

        assert manager._flatten_toml(nested) == {
            "database.name": "launches",
            "database.wal_mode": True,
            "logging.level": "DEBUG",
        }

    def test_flatten_deeply_nested(self):
        manager = ConfigManager()
        assert manager._flatten_toml({"a": {"b": {"c": "value"}}}) == {"a.b.c": "value"}


class TestEnvParsing:
    """Test environment variable parsing."""

    def test_parse_int(self):
        manager = ConfigManager()
        assert manager._parse_env_value("-5", int) == -5

    def test_parse_bool(self):
        manager = ConfigManager()
        assert manager._parse_env_value("true", bool) is True
        assert manager._parse_env_value("on", bool) is True
        assert manager._parse_env_value("0", bool) is False

    def test_parse_unsupported_type(self):
        manager = ConfigManager()
        with pytest.raises(ValueError, match="Unsupported type"):
            manager._parse_env_value("{}", dict)
