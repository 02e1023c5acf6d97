# Persistence Layer - SQLite store for recorded app launches

from .db import (
    DATABASE_NAME,
    SCHEMA_VERSION,
    AppUsageDatabase,
    DatabaseConfig,
    StorageError,
    get_instance,
)
from .app_usage_dao import AppUsageDao

__all__ = [
    "DATABASE_NAME",
    "SCHEMA_VERSION",
    "AppUsageDatabase",
    "DatabaseConfig",
    "StorageError",
    "get_instance",
    "AppUsageDao",
]
