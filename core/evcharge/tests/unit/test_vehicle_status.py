"""Tests for vehicle status mapping."""

import pytest

from core.evcharge.vehicle_status import (
    VehicleStatus,
    extract_charging_state,
    extract_locked_state,
    extract_remaining_range,
    map_vehicle_status_to_capabilities,
)


def test_capabilities_from_payload(payload_factory):
    capabilities = map_vehicle_status_to_capabilities(
        payload_factory(battery=72, state="CHARGING_AC", power=11.0)
    )

    assert capabilities == {
        "locked": True,
        "alarm_contact_door": False,
        "alarm_contact_trunk": False,
        "alarm_contact_bonnet": False,
        "alarm_contact_window": False,
        "alarm_contact_light": False,
        "measure_battery": 72,
        "measure_distance": 250,
        "measure_power": 11.0,
        "onoff": True,
    }


@pytest.mark.parametrize(
    ("meters", "expected"),
    [(250_400, 250), (2_500, 3), (2_499, 2), (0, 0)],
)
def test_remaining_range_rounds_half_up(meters, expected):
    charging = {"status": {"battery": {"remainingCruisingRangeInMeters": meters}}}
    assert extract_remaining_range(charging) == expected


@pytest.mark.parametrize(
    ("state", "expected"),
    [
        ("CHARGING", True),
        ("CHARGING_DC", True),
        ("READY_FOR_CHARGING", False),
        ("CONNECT_CABLE", False),
        (None, False),
    ],
)
def test_charging_state(state, expected):
    assert extract_charging_state({"status": {"state": state}}) is expected


def test_locked_from_reliable_lock_status():
    assert extract_locked_state({"overall": {"locked": "NO", "reliableLockStatus": "LOCKED"}})
    assert not extract_locked_state({"overall": {"locked": "NO", "reliableLockStatus": "UNLOCKED"}})


def test_open_contacts(payload_factory):
    payload = payload_factory()
    payload["status"]["overall"]["doors"] = "OPEN"
    payload["status"]["detail"]["trunk"] = "OPEN"
    payload["status"]["overall"]["lights"] = "ON"

    status = VehicleStatus.from_api(payload)

    assert status.door_open
    assert status.trunk_open
    assert status.light_on
    assert not status.bonnet_open
    assert status.to_dict()["charging_state"] == "READY_FOR_CHARGING"


def test_missing_section_raises_key_error(payload_factory):
    payload = payload_factory()
    del payload["charging"]["status"]["battery"]

    with pytest.raises(KeyError):
        VehicleStatus.from_api(payload)
