"""Environment signal sources consumed by the usage collector.

Each platform service the collector reads sits behind a narrow Protocol so
the collector can run against fakes in tests. Implementations raise
SignalUnavailable when a signal cannot be read; the collector substitutes a
default and carries on.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Protocol


class SignalUnavailable(Exception):
    """A platform signal could not be read."""


class AudioDeviceType(str, Enum):
    """Kind of an attached audio input or output device."""

    UNKNOWN = "unknown"
    BUILTIN_SPEAKER = "builtin_speaker"
    BUILTIN_MIC = "builtin_mic"
    HDMI = "hdmi"
    WIRED_HEADPHONES = "wired_headphones"
    WIRED_HEADSET = "wired_headset"
    LINE_ANALOG = "line_analog"
    LINE_DIGITAL = "line_digital"
    AUX_LINE = "aux_line"
    USB_ACCESSORY = "usb_accessory"
    USB_DEVICE = "usb_device"
    USB_HEADSET = "usb_headset"
    BLUETOOTH_A2DP = "bluetooth_a2dp"
    BLE_HEADSET = "ble_headset"
    BLE_SPEAKER = "ble_speaker"
    BLE_BROADCAST = "ble_broadcast"


# Device types that count as a connected headset/audio accessory
ACCESSORY_TYPES: frozenset[AudioDeviceType] = frozenset({
    AudioDeviceType.AUX_LINE,
    AudioDeviceType.BLE_BROADCAST,
    AudioDeviceType.BLE_HEADSET,
    AudioDeviceType.BLE_SPEAKER,
    AudioDeviceType.BLUETOOTH_A2DP,
    AudioDeviceType.LINE_ANALOG,
    AudioDeviceType.LINE_DIGITAL,
    AudioDeviceType.USB_ACCESSORY,
    AudioDeviceType.USB_DEVICE,
    AudioDeviceType.USB_HEADSET,
    AudioDeviceType.WIRED_HEADPHONES,
    AudioDeviceType.WIRED_HEADSET,
})


class BatteryStatus(str, Enum):
    """Battery status as last reported by the power subsystem."""

    UNKNOWN = "unknown"
    CHARGING = "charging"
    DISCHARGING = "discharging"
    NOT_CHARGING = "not_charging"
    FULL = "full"


class NetworkTransport(str, Enum):
    """Transport carried by the active network."""

    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    BLUETOOTH = "bluetooth"
    VPN = "vpn"


@dataclass(frozen=True)
class AudioDevice:
    """An attached audio device; only the type tag matters to the collector."""

    type: AudioDeviceType
    name: str = ""


@dataclass(frozen=True)
class BluetoothAdapterState:
    """Power state and pairing count of the default Bluetooth adapter."""

    enabled: bool
    bonded_device_count: int


class Clock(Protocol):
    def now(self) -> datetime:
        """Current local time."""
        ...


class AudioDeviceSource(Protocol):
    def list_devices(self) -> Iterable[AudioDevice]:
        """Currently attached input and output audio devices."""
        ...


class BatterySource(Protocol):
    def charging_status(self) -> Optional[BatteryStatus]:
        """Most recent battery status, None if nothing was ever reported."""
        ...


class NetworkSource(Protocol):
    def active_transports(self) -> Optional[frozenset[NetworkTransport]]:
        """Transports of the active network, None if there is no active network."""
        ...


class BluetoothSource(Protocol):
    def adapter_state(self) -> Optional[BluetoothAdapterState]:
        """State of the default adapter, None if the device has no adapter."""
        ...


class SettingsSource(Protocol):
    def screen_brightness(self) -> int:
        """Raw system screen brightness setting."""
        ...


@dataclass
class SignalSources:
    """Bundle of every signal source the collector reads."""

    clock: Clock
    audio: AudioDeviceSource
    battery: BatterySource
    network: NetworkSource
    bluetooth: BluetoothSource
    settings: SettingsSource
