"""App usage database: connection management, schema and process-wide handle."""

import asyncio
import sqlite3
import threading
import weakref
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import aiosqlite
import structlog

if TYPE_CHECKING:
    from .app_usage_dao import AppUsageDao

logger = structlog.get_logger(__name__)

DATABASE_NAME = "app_usage_database"
SCHEMA_VERSION = 1

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
SCHEMA_FILE = MIGRATIONS_DIR / "0001_app_usage.sql"


class StorageError(Exception):
    """The store is unavailable or rejected a read or write."""


@dataclass(frozen=True)
class DatabaseConfig:
    """Storage identity and location of the app usage database."""

    name: str = DATABASE_NAME
    version: int = SCHEMA_VERSION
    directory: Path = field(default_factory=lambda: Path("data"))
    wal_mode: bool = True

    @property
    def path(self) -> Path:
        return Path(self.directory) / f"{self.name}.db"


class AppUsageDatabase:
    """Owns the single SQLite connection backing the AppUsage table."""

    def __init__(self, config: DatabaseConfig):
        """
        Initialize the database handle. No I/O happens until first use.

        Args:
            config: Storage name, schema version and directory
        """
        self.config = config
        self.db_path = config.path
        self._connection: Optional[aiosqlite.Connection] = None
        # asyncio locks bind to one loop; callers may come from several threads and loops
        self._connect_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
            weakref.WeakKeyDictionary()
        )
        self._state_lock = threading.Lock()

    async def get_connection(self) -> aiosqlite.Connection:
        """
        Get the database connection, opening it on first call.

        Returns:
            SQLite connection with pragmas applied and schema in place

        Raises:
            StorageError: If the database cannot be opened or initialized
        """
        conn = self._connection
        if conn is not None:
            return conn

        async with self._connect_lock():
            conn = self._connection
            if conn is not None:
                return conn
            try:
                conn = await self._open()
            except (aiosqlite.Error, sqlite3.Error, OSError) as exc:
                logger.error(
                    "database_open_failed",
                    db_path=str(self.db_path),
                    error=str(exc),
                )
                raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
            with self._state_lock:
                existing = self._connection
                if existing is None:
                    self._connection = conn
                    return conn

        # Another thread's loop opened the database first
        await conn.close()
        return existing

    def _connect_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._state_lock:
            lock = self._connect_locks.get(loop)
            if lock is None:
                lock = self._connect_locks[loop] = asyncio.Lock()
            return lock

    async def _open(self) -> aiosqlite.Connection:
        # Ensure database directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(self.db_path))

        try:
            await conn.execute("PRAGMA foreign_keys=ON")
            if self.config.wal_mode:
                await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute("PRAGMA busy_timeout=5000")

            cursor = await conn.execute("PRAGMA journal_mode")
            mode = await cursor.fetchone()
            await cursor.close()

            if self.config.wal_mode and mode[0].lower() != "wal":
                raise StorageError(
                    f"Failed to enable WAL mode. Expected 'wal', got '{mode[0]}'."
                )

            await self._ensure_schema(conn)
        except Exception:
            # Clean up connection on any configuration failure
            await conn.close()
            raise

        logger.info(
            "database_connection_established",
            db_path=str(self.db_path),
            journal_mode=mode[0],
            schema_version=self.config.version,
        )
        return conn

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        cursor = await conn.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        await cursor.close()
        current = row[0]

        if current == self.config.version:
            return

        if current == 0:
            await conn.executescript(SCHEMA_FILE.read_text())
            await conn.execute(f"PRAGMA user_version = {int(self.config.version)}")
            await conn.commit()
            logger.info(
                "database_schema_created",
                db_path=str(self.db_path),
                schema_version=self.config.version,
            )
            return

        await self._migrate(conn, current, self.config.version)

    async def _migrate(
        self, conn: aiosqlite.Connection, from_version: int, to_version: int
    ) -> None:
        """Upgrade an existing database between schema versions.

        Only version 1 exists, so every stored version other than the
        configured one is rejected. New versions add their step here.
        """
        raise StorageError(
            f"No migration path for {self.db_path} "
            f"from schema version {from_version} to {to_version}"
        )

    def app_usage_dao(self) -> "AppUsageDao":
        """Data access object for the AppUsage table."""
        from .app_usage_dao import AppUsageDao  # noqa: PLC0415

        return AppUsageDao(self)

    async def close(self) -> None:
        """Close database connection."""
        with self._state_lock:
            conn, self._connection = self._connection, None
        if conn is not None:
            await conn.close()
            logger.info("database_connection_closed", db_path=str(self.db_path))


# Process-wide handle, created once by get_instance()
_instance: Optional[AppUsageDatabase] = None
_instance_lock = threading.Lock()


def get_instance(config: Optional[DatabaseConfig] = None) -> AppUsageDatabase:
    """
    Return the process-wide database handle, creating it on first call.

    Args:
        config: Used only by the call that creates the handle

    Returns:
        The same AppUsageDatabase for every caller in this process
    """
    global _instance
    instance = _instance
    if instance is not None:
        if config is not None and config != instance.config:
            logger.warning(
                "database_config_ignored",
                requested=str(config.path),
                active=str(instance.db_path),
            )
        return instance

    with _instance_lock:
        if _instance is None:
            _instance = AppUsageDatabase(config or DatabaseConfig())
            logger.info("database_instance_created", db_path=str(_instance.db_path))
        return _instance
