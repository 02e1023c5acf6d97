"""Unit tests for the AppUsage record."""

import dataclasses

import pytest

from src.appusage.capabilities.usage import AppUsage


def _make_usage(**overrides) -> AppUsage:
    values = dict(
        id=None,
        hour_of_day=8,
        package_name="org.example.reader",
        is_headset_connected=True,
        is_charging=False,
        is_wifi_connected=False,
        is_mobile_data_connected=True,
        is_bluetooth_connected=True,
        brightness=200,
    )
    values.update(overrides)
    return AppUsage(**values)


@pytest.mark.parametrize("hour", [-1, 24, 99])
def test_hour_out_of_range_rejected(hour):
    with pytest.raises(ValueError, match="hour_of_day"):
        _make_usage(hour_of_day=hour)


def test_record_is_immutable():
    usage = _make_usage()
    with pytest.raises(dataclasses.FrozenInstanceError):
        usage.brightness = 10  # type: ignore[misc]


def test_with_id_copies_every_other_field():
    usage = _make_usage()
    stored = usage.with_id(7)

    assert stored.id == 7
    assert usage.id is None
    assert dataclasses.replace(stored, id=None) == usage


def test_trace_fields_order():
    assert list(_make_usage().trace_fields()) == [
        "id",
        "hour_of_day",
        "package_name",
        "is_headset_connected",
        "is_charging",
        "is_wifi_connected",
        "is_mobile_data_connected",
        "is_bluetooth_connected",
        "brightness",
    ]


def test_from_row_converts_integer_flags():
    usage = AppUsage.from_row((3, 22, "com.example.app", 1, 0, 1, 0, 1, -1))

    assert usage == AppUsage(
        id=3,
        hour_of_day=22,
        package_name="com.example.app",
        is_headset_connected=True,
        is_charging=False,
        is_wifi_connected=True,
        is_mobile_data_connected=False,
        is_bluetooth_connected=True,
        brightness=-1,
    )
    assert usage.is_charging is False
