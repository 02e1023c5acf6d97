"""Data access for the AppUsage table: select-all, insert and delete."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import structlog

from ..capabilities.usage import AppUsage
from .db import StorageError

if TYPE_CHECKING:
    from .db import AppUsageDatabase

logger = structlog.get_logger(__name__)

_COLUMNS = (
    "id, hour_of_day, package_name, is_headset_connected, is_charging, "
    "is_wifi_connected, is_mobile_data_connected, is_bluetooth_connected, brightness"
)


def _values(usage: AppUsage) -> tuple:
    return (
        usage.hour_of_day,
        usage.package_name,
        int(usage.is_headset_connected),
        int(usage.is_charging),
        int(usage.is_wifi_connected),
        int(usage.is_mobile_data_connected),
        int(usage.is_bluetooth_connected),
        usage.brightness,
    )


class AppUsageDao:
    """Append-only access to recorded app launches."""

    def __init__(self, database: AppUsageDatabase):
        self.database = database

    async def get_all(self) -> list[AppUsage]:
        """
        Return every stored record, ordered by id.

        Raises:
            StorageError: If the table cannot be read
        """
        try:
            db = await self.database.get_connection()
            cursor = await db.execute(f"SELECT {_COLUMNS} FROM AppUsage ORDER BY id")
            rows = await cursor.fetchall()
            await cursor.close()
        except aiosqlite.Error as exc:
            logger.error("app_usage_read_failed", error=str(exc))
            raise StorageError(f"Failed to read AppUsage rows: {exc}") from exc

        return [AppUsage.from_row(row) for row in rows]

    async def insert(self, usage: AppUsage) -> int:
        """
        Append one record.

        Args:
            usage: Record to store; id None asks the store to assign one

        Returns:
            The row id of the stored record

        Raises:
            StorageError: If the write is rejected or the store is unavailable
        """
        try:
            db = await self.database.get_connection()
            if usage.id is None:
                cursor = await db.execute(
                    """
                    INSERT INTO AppUsage (
                        hour_of_day, package_name, is_headset_connected, is_charging,
                        is_wifi_connected, is_mobile_data_connected,
                        is_bluetooth_connected, brightness
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    _values(usage),
                )
            else:
                cursor = await db.execute(
                    f"INSERT INTO AppUsage ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (usage.id, *_values(usage)),
                )
            usage_id = cursor.lastrowid
            await cursor.close()
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error(
                "app_usage_insert_failed",
                package_name=usage.package_name,
                error=str(exc),
            )
            raise StorageError(f"Failed to insert AppUsage row: {exc}") from exc

        logger.debug("app_usage_inserted", id=usage_id, package_name=usage.package_name)
        return usage_id

    async def delete(self, usage: AppUsage) -> bool:
        """
        Remove the row matching every field of the record, id included.

        A record with no matching row is a no-op.

        Returns:
            True if a row was removed

        Raises:
            StorageError: If the delete is rejected or the store is unavailable
        """
        if usage.id is None:
            logger.debug("app_usage_delete_skipped", reason="unassigned_id")
            return False

        try:
            db = await self.database.get_connection()
            cursor = await db.execute(
                """
                DELETE FROM AppUsage
                WHERE id = ?
                  AND hour_of_day = ?
                  AND package_name = ?
                  AND is_headset_connected = ?
                  AND is_charging = ?
                  AND is_wifi_connected = ?
                  AND is_mobile_data_connected = ?
                  AND is_bluetooth_connected = ?
                  AND brightness = ?
                """,
                (usage.id, *_values(usage)),
            )
            deleted = cursor.rowcount
            await cursor.close()
            await db.commit()
        except aiosqlite.Error as exc:
            logger.error("app_usage_delete_failed", id=usage.id, error=str(exc))
            raise StorageError(f"Failed to delete AppUsage row: {exc}") from exc

        logger.debug("app_usage_deleted", id=usage.id, deleted=deleted)
        return deleted > 0
