"""Usage data collector: one AppUsage snapshot per app launch.

Reads every environment signal through the sources in SignalSources and
assembles an immutable AppUsage value.

Design principles:
- Never raises: each signal read is its own failure domain and degrades to a
  safe default (False, or the brightness sentinel)
- Read-only: no side effects besides the diagnostic trace line
- Synchronous: every source is a fast local read
"""

from datetime import datetime
from typing import Any, Callable

import structlog

from ..capabilities.signals import (
    ACCESSORY_TYPES,
    BatteryStatus,
    NetworkTransport,
    SignalSources,
)
from ..capabilities.usage import BRIGHTNESS_UNAVAILABLE, AppUsage

logger = structlog.get_logger(__name__)


class UsageDataCollector:
    """Assembles AppUsage records from live environment signals."""

    def __init__(
        self,
        sources: SignalSources,
        brightness_default: int = BRIGHTNESS_UNAVAILABLE,
        trace_enabled: bool = True,
    ):
        """
        Args:
            sources: Signal sources to read from
            brightness_default: Stored when brightness cannot be read
            trace_enabled: Emit the usage_collected debug event
        """
        self.sources = sources
        self.brightness_default = brightness_default
        self.trace_enabled = trace_enabled

    def collect(self, package_name: str) -> AppUsage:
        """Capture the current device context for a launch of package_name.

        Args:
            package_name: Identifier of the launched app

        Returns:
            Fully populated AppUsage with id None (assigned on insert).
        """
        wifi, mobile = self._read_transports()

        usage = AppUsage(
            id=None,
            hour_of_day=self._read_hour(),
            package_name=package_name,
            is_headset_connected=self._read_signal("audio", self._headset_connected, False),
            is_charging=self._read_signal("battery", self._charging, False),
            is_wifi_connected=wifi,
            is_mobile_data_connected=mobile,
            is_bluetooth_connected=self._read_signal("bluetooth", self._bluetooth_connected, False),
            brightness=self._read_signal(
                "brightness", lambda: self.sources.settings.screen_brightness(), self.brightness_default
            ),
        )

        self._trace(usage)
        return usage

    # ------------------------------------------------------------------
    # Signal readers
    # ------------------------------------------------------------------

    def _read_signal(self, name: str, reader: Callable[[], Any], default: Any) -> Any:
        try:
            return reader()
        except Exception as exc:  # noqa: BLE001
            logger.debug("signal_unavailable", signal=name, error=str(exc), default=default)
            return default

    def _read_hour(self) -> int:
        hour = self._read_signal("clock", self._clock_hour, None)
        if hour is None:
            return datetime.now().hour
        return hour

    def _clock_hour(self) -> int:
        hour = self.sources.clock.now().hour
        if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
            raise ValueError(f"Clock returned hour {hour!r}")
        return hour

    def _headset_connected(self) -> bool:
        devices = self.sources.audio.list_devices() or ()
        return any(device.type in ACCESSORY_TYPES for device in devices)

    def _charging(self) -> bool:
        return self.sources.battery.charging_status() == BatteryStatus.CHARGING

    def _read_transports(self) -> tuple[bool, bool]:
        transports = self._read_signal("network", lambda: self.sources.network.active_transports(), None)
        if not transports:
            return False, False
        return (
            NetworkTransport.WIFI in transports,
            NetworkTransport.CELLULAR in transports,
        )

    def _bluetooth_connected(self) -> bool:
        state = self.sources.bluetooth.adapter_state()
        return state is not None and state.enabled and state.bonded_device_count > 0

    def _trace(self, usage: AppUsage) -> None:
        if not self.trace_enabled:
            return
        try:
            logger.debug("usage_collected", **usage.trace_fields())
        except Exception:  # noqa: BLE001
            pass  # Diagnostic sink failures never reach the caller
