# Configuration - two-tier registry and manager

from .manager import ConfigManager, get_config_manager, initialize_config
from .registry import REGISTRY, ConfigKey

__all__ = [
    "ConfigManager",
    "get_config_manager",
    "initialize_config",
    "REGISTRY",
    "ConfigKey",
]
