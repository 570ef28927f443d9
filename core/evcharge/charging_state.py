"""Persisted charging control state.

The flags here are the only state the charging automation carries between
evaluation ticks. They are written after the charger has actually been
switched, never before.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from datetime import datetime

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = (
    "manual_override_timestamp",
    "last_override_log_time",
    "last_expiration_log_time",
)


@dataclass
class ChargingControlState:
    """Automation flags and last known device state."""

    low_price_enabled: bool = False  # charging currently on because of price
    low_battery_enabled: bool = False  # charging currently on because of low battery
    charging_on: bool = False
    manual_override_timestamp: datetime | None = None
    last_override_log_time: datetime | None = None
    last_expiration_log_time: datetime | None = None
    battery_level: float | None = None
    next_charging_times: str = "Unknown"

    @property
    def is_automatic_control_active(self) -> bool:
        return self.low_price_enabled or self.low_battery_enabled

    def clear_automation_flags(self) -> None:
        self.low_price_enabled = False
        self.low_battery_enabled = False

    def to_dict(self) -> dict:
        data = asdict(self)
        for name in _DATETIME_FIELDS:
            if data[name] is not None:
                data[name] = data[name].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChargingControlState":
        known = {field.name for field in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        for name in _DATETIME_FIELDS:
            if values.get(name):
                values[name] = datetime.fromisoformat(values[name])
            else:
                values[name] = None
        return cls(**values)


class ChargingStateStore:
    """Load and save ChargingControlState as JSON.

    Without a state file the store is memory-only.
    """

    def __init__(self, state_file: str | None = None) -> None:
        self.state_file = state_file

    def load(self) -> ChargingControlState:
        if not self.state_file or not os.path.exists(self.state_file):
            return ChargingControlState()

        try:
            with open(self.state_file) as f:
                state = ChargingControlState.from_dict(json.load(f))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(
                f"Could not load charging state from {self.state_file}, starting fresh: {e}"
            )
            return ChargingControlState()

        if state.low_battery_enabled:
            logger.info("Restored state: charging was enabled due to low battery")
        if state.low_price_enabled:
            logger.info("Restored state: charging was enabled due to low price")
        return state

    def save(self, state: ChargingControlState) -> None:
        if not self.state_file:
            return

        try:
            with open(self.state_file, "w") as f:
                json.dump(state.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save charging state to {self.state_file}: {e}")
