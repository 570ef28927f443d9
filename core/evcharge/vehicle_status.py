"""Vehicle status mapping.

Turns the raw status and charging payloads of the vehicle API into flat
device values. Extractors take the relevant payload section and read the
fields the API documents; missing sections raise KeyError to the caller.
"""

import math
from dataclasses import asdict, dataclass

CHARGING_STATES = ("CHARGING", "CHARGING_AC", "CHARGING_DC")


def extract_locked_state(status: dict) -> bool:
    overall = status["overall"]
    return overall.get("locked") == "YES" or overall.get("reliableLockStatus") == "LOCKED"


def extract_door_contact(status: dict) -> bool:
    return status["overall"].get("doors") == "OPEN"


def extract_trunk_contact(status: dict) -> bool:
    return status["detail"].get("trunk") == "OPEN"


def extract_bonnet_contact(status: dict) -> bool:
    return status["detail"].get("bonnet") == "OPEN"


def extract_window_contact(status: dict) -> bool:
    return status["overall"].get("windows") == "OPEN"


def extract_light_contact(status: dict) -> bool:
    return status["overall"].get("lights") == "ON"


def extract_battery_level(charging: dict) -> float:
    return charging["status"]["battery"]["stateOfChargeInPercent"]


def extract_remaining_range(charging: dict) -> int:
    """Remaining range in whole kilometres, halves round up."""
    meters = charging["status"]["battery"]["remainingCruisingRangeInMeters"]
    return math.floor(meters / 1000 + 0.5)


def extract_charging_power(charging: dict) -> float:
    return charging["status"]["chargePowerInKw"]


def extract_charging_state(charging: dict) -> bool:
    """True while the vehicle reports active AC or DC charging."""
    return charging["status"].get("state") in CHARGING_STATES


@dataclass
class VehicleStatus:
    """Flattened vehicle state as exposed to the rest of the system."""

    locked: bool
    door_open: bool
    trunk_open: bool
    bonnet_open: bool
    window_open: bool
    light_on: bool
    battery_level: float
    range_km: int
    charging_power_kw: float
    is_charging: bool
    charging_state: str | None = None

    @classmethod
    def from_api(cls, payload: dict) -> "VehicleStatus":
        """Build from {"status": ..., "charging": ...} as fetched by the API client."""
        status = payload["status"]
        charging = payload["charging"]
        return cls(
            locked=extract_locked_state(status),
            door_open=extract_door_contact(status),
            trunk_open=extract_trunk_contact(status),
            bonnet_open=extract_bonnet_contact(status),
            window_open=extract_window_contact(status),
            light_on=extract_light_contact(status),
            battery_level=extract_battery_level(charging),
            range_km=extract_remaining_range(charging),
            charging_power_kw=extract_charging_power(charging),
            is_charging=extract_charging_state(charging),
            charging_state=charging["status"].get("state"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def map_vehicle_status_to_capabilities(payload: dict) -> dict:
    """Map the raw API payload to device capability values."""
    status = VehicleStatus.from_api(payload)
    return {
        "locked": status.locked,
        "alarm_contact_door": status.door_open,
        "alarm_contact_trunk": status.trunk_open,
        "alarm_contact_bonnet": status.bonnet_open,
        "alarm_contact_window": status.window_open,
        "alarm_contact_light": status.light_on,
        "measure_battery": status.battery_level,
        "measure_distance": status.range_km,
        "measure_power": status.charging_power_kw,
        "onoff": status.is_charging,
    }
