"""App usage record captured on every app launch.

One AppUsage is one row of the AppUsage table. Records are immutable: the
store assigns the key on insert and the only later mutation is deletion.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Optional

# Sentinel stored when the screen brightness setting cannot be read.
# Outside every platform's valid range (valid values are >= 0).
BRIGHTNESS_UNAVAILABLE = -1


@dataclass(frozen=True)
class AppUsage:
    """Device context at the moment an app was launched."""

    id: Optional[int]  # None until assigned by the store
    hour_of_day: int  # 0-23, device local time
    package_name: str
    is_headset_connected: bool
    is_charging: bool  # "charging" status only, not "full"
    is_wifi_connected: bool
    is_mobile_data_connected: bool
    is_bluetooth_connected: bool  # adapter on with at least one bonded device
    brightness: int  # raw system setting, BRIGHTNESS_UNAVAILABLE if unreadable

    def __post_init__(self) -> None:
        if not 0 <= self.hour_of_day <= 23:
            raise ValueError(f"hour_of_day must be in [0, 23], got {self.hour_of_day}")

    def with_id(self, usage_id: int) -> "AppUsage":
        """Return a copy carrying the store-assigned key."""
        return replace(self, id=usage_id)

    def trace_fields(self) -> dict[str, Any]:
        """Every field in declaration order, for the diagnostic trace line."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_row(cls, row: tuple) -> "AppUsage":
        """Build a record from a row selected in column order."""
        return cls(
            id=row[0],
            hour_of_day=row[1],
            package_name=row[2],
            is_headset_connected=bool(row[3]),
            is_charging=bool(row[4]),
            is_wifi_connected=bool(row[5]),
            is_mobile_data_connected=bool(row[6]),
            is_bluetooth_connected=bool(row[7]),
            brightness=row[8],
        )
