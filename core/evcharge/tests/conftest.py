"""Shared test fixtures for the EV charge manager tests."""

import logging
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add the project root to Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../../.."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

# Configure logging
logging.basicConfig(level=logging.INFO)

from core.evcharge.charger_switch import MockSwitch  # noqa: E402
from core.evcharge.charging_controller import ChargingController  # noqa: E402
from core.evcharge.charging_state import ChargingStateStore  # noqa: E402
from core.evcharge.models import PriceEntry, PriceInterval, build_store  # noqa: E402
from core.evcharge.price_manager import MockSource, PriceManager  # noqa: E402
from core.evcharge.settings import ChargingSettings, VehicleSettings  # noqa: E402
from core.evcharge.skoda_api import MockVehicleClient  # noqa: E402

UTC = timezone.utc
QUARTER = timedelta(minutes=15)


def make_interval(start: datetime, price: float, minutes: int = 15) -> PriceInterval:
    return PriceInterval(start=start, end=start + timedelta(minutes=minutes), price=price)


def make_day(day_start: datetime, prices: list) -> list[PriceInterval]:
    """Consecutive 15-minute intervals starting at day_start."""
    return [make_interval(day_start + i * QUARTER, price) for i, price in enumerate(prices)]


def vehicle_payload(
    battery: float = 60,
    state: str = "READY_FOR_CHARGING",
    range_m: int = 250_400,
    power: float = 0.0,
) -> dict:
    """Raw status/charging payload as returned by the vehicle API."""
    return {
        "status": {
            "overall": {
                "doorsLocked": "YES",
                "locked": "YES",
                "doors": "CLOSED",
                "windows": "CLOSED",
                "lights": "OFF",
                "reliableLockStatus": "LOCKED",
            },
            "detail": {"sunroof": "CLOSED", "trunk": "CLOSED", "bonnet": "CLOSED"},
            "carCapturedTimestamp": "2025-01-15T10:00:00Z",
        },
        "charging": {
            "status": {
                "chargingRateInKilometersPerHour": 0,
                "chargePowerInKw": power,
                "remainingTimeToFullyChargedInMinutes": 0,
                "state": state,
                "battery": {
                    "remainingCruisingRangeInMeters": range_m,
                    "stateOfChargeInPercent": battery,
                },
            },
            "carCapturedTimestamp": "2025-01-15T10:00:00Z",
            "errors": [],
        },
        "timestamp": "2025-01-15T10:00:00+00:00",
    }


@pytest.fixture
def now():
    """Fixed evaluation instant: 2025-01-15 10:00 UTC."""
    return datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def today_start(now):
    return now.replace(hour=0, minute=0)


@pytest.fixture
def tomorrow_start(today_start):
    return today_start + timedelta(days=1)


@pytest.fixture
def interval_factory():
    return make_interval


@pytest.fixture
def day_factory():
    return make_day


@pytest.fixture
def payload_factory():
    return vehicle_payload


@pytest.fixture
def store_factory():
    return build_store


@pytest.fixture
def cheap_midday_entries(today_start, tomorrow_start):
    """Today: 0.30 everywhere except 0.05 from 10:00 to 11:00. Tomorrow: flat 0.25."""
    entries = []
    for i in range(96):
        start = today_start + i * QUARTER
        price = 0.05 if 40 <= i < 44 else 0.30
        entries.append(PriceEntry(start=start, price=price))
    for i in range(96):
        entries.append(PriceEntry(start=tomorrow_start + i * QUARTER, price=0.25))
    return entries


@pytest.fixture
def mock_source(cheap_midday_entries):
    return MockSource(cheap_midday_entries)


@pytest.fixture
def mock_switch():
    return MockSwitch()


@pytest.fixture
def mock_vehicle():
    return MockVehicleClient(payload=vehicle_payload())


@pytest.fixture
def controller_factory(mock_source, mock_switch, tmp_path):
    """Build a ChargingController wired to mocks, with overridable settings."""

    def _create(
        source=None,
        switch=None,
        vehicle_client=None,
        persist: bool = False,
        **charging_kwargs,
    ) -> ChargingController:
        settings = ChargingSettings(
            enable_low_price_charging=True,
            low_price_blocks_count=4,
            price_timezone="UTC",
        )
        settings.update(**charging_kwargs)

        state_store = ChargingStateStore(
            str(tmp_path / "state.json") if persist else None
        )
        return ChargingController(
            price_manager=PriceManager(source or mock_source),
            switch=switch or mock_switch,
            charging_settings=settings,
            vehicle_client=vehicle_client,
            vehicle_settings=VehicleSettings(vin="TMBJB9NY0MF000001"),
            state_store=state_store,
        )

    return _create
