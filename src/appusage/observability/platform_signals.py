"""Signal sources backed by the local machine (sysfs, psutil, pactl, bluetoothctl).

Every source reads a fast local interface or runs a short CLI query. Missing
subsystems map to the "nothing there" answer of the interface (no devices, no
adapter, no active network); unreadable ones raise SignalUnavailable.
"""

import json
import re
import socket
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional

import psutil
import structlog

from ..capabilities.signals import (
    ACCESSORY_TYPES,
    AudioDevice,
    AudioDeviceType,
    BatteryStatus,
    BluetoothAdapterState,
    NetworkTransport,
    SignalSources,
    SignalUnavailable,
)

logger = structlog.get_logger(__name__)

SYS_ROOT = Path("/sys")
BLUEZ_STATE_DIR = Path("/var/lib/bluetooth")
PACTL = "pactl"
PACTL_TIMEOUT_SECONDS = 3
BLUETOOTHCTL = "bluetoothctl"
BLUETOOTHCTL_TIMEOUT_SECONDS = 3

_MAC_ADDRESS = re.compile(r"^([0-9A-F]{2}:){5}[0-9A-F]{2}$", re.IGNORECASE)
# "Device 00:1A:7D:DA:71:13 WH-1000XM4"
_BLUETOOTHCTL_DEVICE = re.compile(r"^Device\s+([0-9A-F]{2}:){5}[0-9A-F]{2}\b", re.IGNORECASE)

_POWER_SUPPLY_STATUS = {
    "charging": BatteryStatus.CHARGING,
    "discharging": BatteryStatus.DISCHARGING,
    "not charging": BatteryStatus.NOT_CHARGING,
    "full": BatteryStatus.FULL,
}

# Port types as printed by pactl
_PORT_TYPES = {
    "headphones": AudioDeviceType.WIRED_HEADPHONES,
    "headset": AudioDeviceType.WIRED_HEADSET,
    "handset": AudioDeviceType.WIRED_HEADSET,
    "line": AudioDeviceType.LINE_ANALOG,
    "spdif": AudioDeviceType.LINE_DIGITAL,
    "aux": AudioDeviceType.AUX_LINE,
    "hdmi": AudioDeviceType.HDMI,
    "speaker": AudioDeviceType.BUILTIN_SPEAKER,
    "mic": AudioDeviceType.BUILTIN_MIC,
}

# Older servers leave the type out; fall back to ALSA UCM/profile port names
_PORT_NAME_TOKENS = (
    ("headphone", AudioDeviceType.WIRED_HEADPHONES),
    ("headset", AudioDeviceType.WIRED_HEADSET),
    ("iec958", AudioDeviceType.LINE_DIGITAL),
    ("spdif", AudioDeviceType.LINE_DIGITAL),
    ("hdmi", AudioDeviceType.HDMI),
    ("line", AudioDeviceType.LINE_ANALOG),
    ("aux", AudioDeviceType.AUX_LINE),
    ("speaker", AudioDeviceType.BUILTIN_SPEAKER),
    ("mic", AudioDeviceType.BUILTIN_MIC),
)

_HEADSET_FORM_FACTORS = frozenset({"headset", "headphone", "hands-free", "handset"})

_CELLULAR_PREFIXES = ("wwan", "rmnet", "ccmni", "ppp")
_VPN_PREFIXES = ("tun", "tap", "wg")


class SystemClock:
    def now(self) -> datetime:
        return datetime.now()


class PactlAudioDeviceSource:
    """Sinks and sources known to the sound server (PulseAudio or PipeWire).

    Queried through `pactl --format=json`. Ports carry the jack state, so a
    headphone or line port only counts once the server reports it available.
    Bluetooth and USB devices count as a whole, classified by profile and
    form factor.
    """

    def __init__(self, pactl: str = PACTL, timeout: float = PACTL_TIMEOUT_SECONDS):
        self.pactl = pactl
        self.timeout = timeout

    def list_devices(self) -> list[AudioDevice]:
        devices = []
        for kind in ("sinks", "sources"):
            for entry in self._list(kind):
                props = entry.get("properties") or {}
                if props.get("device.class") == "monitor":
                    continue
                name = entry.get("description") or entry.get("name", "")
                devices.extend(AudioDevice(type=t, name=name) for t in _classify_pulse_device(entry))
        return devices

    def _list(self, kind: str) -> list[dict]:
        try:
            result = subprocess.run(
                [self.pactl, "--format=json", "list", kind],
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SignalUnavailable(f"Cannot run {self.pactl}: {exc}") from exc

        if result.returncode != 0:
            error = result.stderr.decode("utf-8", errors="replace").strip()
            raise SignalUnavailable(f"{self.pactl} list {kind} failed: {error}")

        try:
            entries = json.loads(result.stdout.decode("utf-8", errors="replace") or "[]")
        except ValueError as exc:
            raise SignalUnavailable(f"Unparseable {self.pactl} output: {exc}") from exc
        if not isinstance(entries, list):
            raise SignalUnavailable(f"Unexpected {self.pactl} output for {kind}")
        return entries


def _classify_pulse_device(entry: dict) -> list[AudioDeviceType]:
    props = entry.get("properties") or {}
    bus = str(props.get("device.bus", "")).lower()
    form_factor = str(props.get("device.form_factor", "")).lower()

    if bus == "bluetooth":
        return [_classify_bluetooth_profile(props, form_factor)]
    if bus == "usb":
        if form_factor in _HEADSET_FORM_FACTORS:
            return [AudioDeviceType.USB_HEADSET]
        return [AudioDeviceType.USB_DEVICE]

    types = []
    for port in entry.get("ports") or []:
        availability = port.get("availability", "")
        if availability == "not available":
            continue
        port_type = _classify_port(port)
        # Jack ports without detection cannot tell whether anything is plugged in
        if port_type in ACCESSORY_TYPES and availability != "available":
            continue
        types.append(port_type)
    return types


def _classify_port(port: dict) -> AudioDeviceType:
    port_type = _PORT_TYPES.get(str(port.get("type", "")).lower())
    if port_type is not None:
        return port_type
    name = str(port.get("name", "")).lower()
    for token, device_type in _PORT_NAME_TOKENS:
        if token in name:
            return device_type
    return AudioDeviceType.UNKNOWN


def _classify_bluetooth_profile(props: dict, form_factor: str) -> AudioDeviceType:
    profile = str(props.get("api.bluez5.profile") or props.get("bluetooth.protocol") or "").lower()
    if "bap" in profile:
        if "broadcast" in profile:
            return AudioDeviceType.BLE_BROADCAST
        if "duplex" in profile or form_factor in _HEADSET_FORM_FACTORS:
            return AudioDeviceType.BLE_HEADSET
        return AudioDeviceType.BLE_SPEAKER
    if "a2dp" in profile:
        return AudioDeviceType.BLUETOOTH_A2DP
    return AudioDeviceType.UNKNOWN


class PowerSupplyBatterySource:
    """Battery status from the kernel power_supply class, psutil as fallback."""

    def __init__(self, sys_root: Path = SYS_ROOT):
        self.power_supply_dir = Path(sys_root) / "class" / "power_supply"

    def charging_status(self) -> Optional[BatteryStatus]:
        for status_file in sorted(self.power_supply_dir.glob("BAT*/status")):
            try:
                raw = status_file.read_text().strip().lower()
            except OSError as exc:
                logger.debug("battery_status_unreadable", path=str(status_file), error=str(exc))
                continue
            return _POWER_SUPPLY_STATUS.get(raw, BatteryStatus.UNKNOWN)
        return self._psutil_status()

    def _psutil_status(self) -> Optional[BatteryStatus]:
        try:
            battery = psutil.sensors_battery()
        except (AttributeError, NotImplementedError, OSError) as exc:
            raise SignalUnavailable(f"Battery sensors unavailable: {exc}") from exc

        if battery is None:
            return None
        if battery.power_plugged is None:
            return BatteryStatus.UNKNOWN
        if not battery.power_plugged:
            return BatteryStatus.DISCHARGING
        if battery.percent >= 100:
            return BatteryStatus.FULL
        return BatteryStatus.CHARGING


class PsutilNetworkSource:
    """Transports of every interface that is up and holds an IP address."""

    def __init__(self, sys_root: Path = SYS_ROOT):
        self.net_class_dir = Path(sys_root) / "class" / "net"

    def active_transports(self) -> Optional[frozenset[NetworkTransport]]:
        try:
            stats = psutil.net_if_stats()
            addrs = psutil.net_if_addrs()
        except OSError as exc:
            raise SignalUnavailable(f"Cannot query network interfaces: {exc}") from exc

        transports = set()
        for name, stat in stats.items():
            if not stat.isup or name.startswith("lo"):
                continue
            has_ip = any(
                addr.family in (socket.AF_INET, socket.AF_INET6)
                for addr in addrs.get(name, [])
            )
            if not has_ip:
                continue
            transports.add(self._classify(name))

        if not transports:
            return None
        return frozenset(transports)

    def _classify(self, name: str) -> NetworkTransport:
        if name.startswith("wl") or (self.net_class_dir / name / "wireless").exists():
            return NetworkTransport.WIFI
        if name.startswith(_CELLULAR_PREFIXES):
            return NetworkTransport.CELLULAR
        if name.startswith(_VPN_PREFIXES):
            return NetworkTransport.VPN
        if name.startswith("bnep"):
            return NetworkTransport.BLUETOOTH
        return NetworkTransport.ETHERNET


class SysfsBluetoothSource:
    """Default Bluetooth adapter power state and BlueZ pairing records.

    Pairing records under /var/lib/bluetooth are usually readable by root
    only. When the directory is not readable, bonded devices are listed
    through `bluetoothctl`, which asks bluetoothd over D-Bus.
    """

    def __init__(
        self,
        sys_root: Path = SYS_ROOT,
        state_dir: Path = BLUEZ_STATE_DIR,
        bluetoothctl: str = BLUETOOTHCTL,
        timeout: float = BLUETOOTHCTL_TIMEOUT_SECONDS,
    ):
        self.bluetooth_dir = Path(sys_root) / "class" / "bluetooth"
        self.rfkill_dir = Path(sys_root) / "class" / "rfkill"
        self.state_dir = Path(state_dir)
        self.bluetoothctl = bluetoothctl
        self.timeout = timeout

    def adapter_state(self) -> Optional[BluetoothAdapterState]:
        adapters = sorted(self.bluetooth_dir.glob("hci*"))
        if not adapters:
            return None

        enabled = self._radio_enabled()
        bonded = self._bonded_device_count() if enabled else 0
        return BluetoothAdapterState(enabled=enabled, bonded_device_count=bonded)

    def _radio_enabled(self) -> bool:
        """False only when every bluetooth rfkill switch is blocked."""
        switches = []
        for entry in self.rfkill_dir.glob("rfkill*"):
            try:
                if (entry / "type").read_text().strip() != "bluetooth":
                    continue
                soft = (entry / "soft").read_text().strip()
                hard = (entry / "hard").read_text().strip()
            except OSError as exc:
                raise SignalUnavailable(f"Cannot read {entry}: {exc}") from exc
            switches.append(soft == "0" and hard == "0")
        if not switches:
            return True
        return any(switches)

    def _bonded_device_count(self) -> int:
        try:
            adapters = [p for p in self.state_dir.iterdir() if _MAC_ADDRESS.match(p.name)]
            return sum(
                1
                for adapter in adapters
                for device in adapter.iterdir()
                if _MAC_ADDRESS.match(device.name) and (device / "info").exists()
            )
        except FileNotFoundError:
            return 0
        except PermissionError as exc:
            logger.debug("pairing_records_unreadable", path=str(self.state_dir), error=str(exc))
            return self._bluetoothctl_paired_count()
        except OSError as exc:
            raise SignalUnavailable(f"Cannot read pairing records in {self.state_dir}: {exc}") from exc

    def _bluetoothctl_paired_count(self) -> int:
        try:
            result = subprocess.run(
                [self.bluetoothctl, "devices", "Paired"],
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise SignalUnavailable(f"Cannot run {self.bluetoothctl}: {exc}") from exc

        if result.returncode != 0:
            error = result.stderr.decode("utf-8", errors="replace").strip()
            raise SignalUnavailable(f"{self.bluetoothctl} devices Paired failed: {error}")

        output = result.stdout.decode("utf-8", errors="replace")
        return sum(1 for line in output.splitlines() if _BLUETOOTHCTL_DEVICE.match(line.strip()))


class SysfsBacklightSource:
    """Raw brightness of the first backlight device."""

    def __init__(self, sys_root: Path = SYS_ROOT):
        self.backlight_dir = Path(sys_root) / "class" / "backlight"

    def screen_brightness(self) -> int:
        for device in sorted(self.backlight_dir.glob("*")):
            try:
                return int((device / "brightness").read_text().strip())
            except (OSError, ValueError) as exc:
                raise SignalUnavailable(f"Cannot read brightness of {device}: {exc}") from exc
        raise SignalUnavailable(f"No backlight device under {self.backlight_dir}")


def default_signal_sources() -> SignalSources:
    """Signal sources reading this machine."""
    return SignalSources(
        clock=SystemClock(),
        audio=PactlAudioDeviceSource(),
        battery=PowerSupplyBatterySource(),
        network=PsutilNetworkSource(),
        bluetooth=SysfsBluetoothSource(),
        settings=SysfsBacklightSource(),
    )
