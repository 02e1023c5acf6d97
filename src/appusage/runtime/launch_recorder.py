"""Record an app launch: collect the device context, then store it."""

from __future__ import annotations

import asyncio

import structlog
from structlog.contextvars import bound_contextvars

from ..capabilities.usage import AppUsage
from ..observability.usage_collector import UsageDataCollector
from ..persistence.db import AppUsageDatabase

logger = structlog.get_logger(__name__)


class LaunchRecorder:
    """Collects and persists one AppUsage row per app launch."""

    def __init__(self, collector: UsageDataCollector, database: AppUsageDatabase):
        self.collector = collector
        self.dao = database.app_usage_dao()

    async def record_launch(self, package_name: str) -> AppUsage:
        """Capture and store the context of a launch of package_name.

        The collector reads sysfs/procfs synchronously, so it runs in a worker
        thread to keep the event loop free.

        Returns:
            The stored record, carrying its assigned id

        Raises:
            StorageError: If the record could not be stored
        """
        with bound_contextvars(package_name=package_name):
            usage = await asyncio.to_thread(self.collector.collect, package_name)
            usage_id = await self.dao.insert(usage)
            logger.info("launch_recorded", id=usage_id, hour_of_day=usage.hour_of_day)
            return usage.with_id(usage_id)
