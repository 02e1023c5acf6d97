"""Integration tests: collect device context on launch and persist it."""

import asyncio
from datetime import datetime

import pytest

from src.appusage.capabilities.signals import (
    AudioDevice,
    AudioDeviceType,
    BatteryStatus,
    BluetoothAdapterState,
    NetworkTransport,
    SignalSources,
)
from src.appusage.capabilities.usage import AppUsage
from src.appusage.observability.usage_collector import UsageDataCollector
from src.appusage.persistence.db import DatabaseConfig, StorageError, get_instance
from src.appusage.runtime.launch_recorder import LaunchRecorder


class StubSources:
    """Fixed device state: evening, USB headset, charging, cellular, paired BT."""

    def now(self):
        return datetime(2024, 11, 2, 21, 5)

    def list_devices(self):
        return [AudioDevice(AudioDeviceType.USB_HEADSET, "Headset")]

    def charging_status(self):
        return BatteryStatus.CHARGING

    def active_transports(self):
        return frozenset({NetworkTransport.CELLULAR})

    def adapter_state(self):
        return BluetoothAdapterState(enabled=True, bonded_device_count=2)

    def screen_brightness(self):
        return 64


@pytest.fixture(autouse=True)
def reset_instance():
    import src.appusage.persistence.db as db_module

    db_module._instance = None
    yield
    db_module._instance = None


@pytest.fixture
async def database(tmp_path):
    db = get_instance(DatabaseConfig(directory=tmp_path))
    yield db
    await db.close()


@pytest.fixture
def collector():
    stub = StubSources()
    sources = SignalSources(
        clock=stub, audio=stub, battery=stub, network=stub, bluetooth=stub, settings=stub
    )
    return UsageDataCollector(sources)


@pytest.mark.asyncio
async def test_record_launch_stores_snapshot(database, collector):
    recorder = LaunchRecorder(collector, database)

    stored = await recorder.record_launch("com.example.mail")

    assert stored == AppUsage(
        id=stored.id,
        hour_of_day=21,
        package_name="com.example.mail",
        is_headset_connected=True,
        is_charging=True,
        is_wifi_connected=False,
        is_mobile_data_connected=True,
        is_bluetooth_connected=True,
        brightness=64,
    )
    assert stored.id is not None
    assert await database.app_usage_dao().get_all() == [stored]


@pytest.mark.asyncio
async def test_concurrent_launches_get_unique_ids(database, collector):
    recorder = LaunchRecorder(collector, database)
    packages = [f"com.example.app{i}" for i in range(10)]

    stored = await asyncio.gather(*(recorder.record_launch(p) for p in packages))

    rows = await database.app_usage_dao().get_all()
    assert len(rows) == 10
    assert len({row.id for row in rows}) == 10
    assert sorted(rows, key=lambda r: r.id) == sorted(stored, key=lambda r: r.id)


@pytest.mark.asyncio
async def test_shared_handle_sees_recorded_rows(tmp_path, database, collector):
    """Every caller of get_instance works against the same store."""
    await LaunchRecorder(collector, database).record_launch("com.example.a")

    other = get_instance(DatabaseConfig(directory=tmp_path))
    assert other is database
    assert len(await other.app_usage_dao().get_all()) == 1


@pytest.mark.asyncio
async def test_storage_failure_propagates(tmp_path, collector):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    database = get_instance(DatabaseConfig(directory=blocker / "db"))

    with pytest.raises(StorageError):
        await LaunchRecorder(collector, database).record_launch("com.example.a")
