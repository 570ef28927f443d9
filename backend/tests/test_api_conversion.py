"""Tests for API conversion functionality.

Covers the conversion from core models to camelCase API responses, kept
separate from core tests to maintain proper architecture boundaries.
"""

from datetime import datetime, timezone

from api_conversion import convert_keys_to_camel_case, snake_to_camel
from api_dataclasses import APIChargingSettings, APIPriceInterval

from core.evcharge.cheapest_intervals import SelectionMode
from core.evcharge.models import PriceInterval
from core.evcharge.settings import ChargingSettings


def test_key_conversion():
    assert snake_to_camel("manual_override_remaining_minutes") == "manualOverrideRemainingMinutes"


def test_nested_values_become_json_friendly():
    moment = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
    data = {
        "last_status_update": moment,
        "selection_mode": SelectionMode.CONTIGUOUS,
        "cheapest_intervals": [{"start_ms": 1, "price": 0.1}],
        "interval": PriceInterval(start=moment, end=moment, price=0.2),
    }

    converted = convert_keys_to_camel_case(data)

    assert converted == {
        "lastStatusUpdate": "2025-01-15T10:00:00+00:00",
        "selectionMode": "contiguous",
        "cheapestIntervals": [{"startMs": 1, "price": 0.1}],
        "interval": {
            "start": "2025-01-15T10:00:00+00:00",
            "end": "2025-01-15T10:00:00+00:00",
            "price": 0.2,
        },
    }


def test_charging_settings_round_trip():
    settings = ChargingSettings(low_price_blocks_count=6, selection_mode="contiguous")

    api_settings = APIChargingSettings.from_internal(settings)

    assert api_settings.lowPriceBlocksCount == 6
    assert api_settings.selectionMode == "contiguous"
    assert api_settings.fallbackPolicy == "when_today_exhausted"

    updated = ChargingSettings()
    updated.update(**api_settings.to_internal_update())
    assert updated == settings


def test_price_interval_conversion():
    start = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
    interval = PriceInterval(start=start, end=start.replace(minute=15), price=0.000012)

    api_interval = APIPriceInterval.from_internal(interval, is_cheapest=True)

    assert api_interval.start == "2025-01-15T10:00:00+00:00"
    assert api_interval.priceText == "0.00001 €/kWh"
    assert api_interval.isCheapest
