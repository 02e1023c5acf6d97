# Capabilities - app usage record and environment signal interfaces

from .usage import AppUsage, BRIGHTNESS_UNAVAILABLE
from .signals import (
    ACCESSORY_TYPES,
    AudioDevice,
    AudioDeviceType,
    BatteryStatus,
    BluetoothAdapterState,
    NetworkTransport,
    SignalSources,
    SignalUnavailable,
)

__all__ = [
    "AppUsage",
    "BRIGHTNESS_UNAVAILABLE",
    "ACCESSORY_TYPES",
    "AudioDevice",
    "AudioDeviceType",
    "BatteryStatus",
    "BluetoothAdapterState",
    "NetworkTransport",
    "SignalSources",
    "SignalUnavailable",
]
