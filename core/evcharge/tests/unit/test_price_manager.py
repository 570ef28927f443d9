"""
Test the PriceManager implementation.
"""

import json
import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from core.evcharge.exceptions import PriceDataUnavailableError
from core.evcharge.models import PriceEntry, interval_key
from core.evcharge.price_manager import (
    MockSource,
    PriceManager,
    PriceSource,
    create_price_source,
    format_price,
)
from core.evcharge.settings import PriceSourceSettings
from core.evcharge.smard_source import SmardSource
from core.evcharge.smartenergy_source import SmartEnergySource
from core.evcharge.tibber_source import TibberSource

UTC = timezone.utc
START = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


def _entries(prices, start=START):
    return [
        PriceEntry(start=start + timedelta(minutes=15 * i), price=price)
        for i, price in enumerate(prices)
    ]


class FailingSource(PriceSource):
    name = "Failing"

    def fetch(self):
        raise PriceDataUnavailableError(source=self.name, message="API down")


@pytest.mark.parametrize(
    ("price", "decimals", "expected"),
    [
        (0, 5, "0.00000 €/kWh"),
        (0.12345, 5, "0.12345 €/kWh"),
        (0.000012, 5, "0.00001 €/kWh"),
        (1e-9, 5, "0.00000 €/kWh"),
        (-0.1234567, 4, "-0.1235 €/kWh"),
        (12.5, 2, "12.50 €/kWh"),
        (0.999996, 5, "1.00000 €/kWh"),
    ],
)
def test_format_price(price, decimals, expected):
    assert format_price(price, decimals) == expected


def test_format_price_never_scientific():
    assert "e" not in format_price(3.2e-7)
    assert "e" not in format_price(1.5e10, 2)


def test_update_prices_fills_store():
    pm = PriceManager(MockSource(_entries([0.1, 0.2, 0.3])))

    store = pm.update_prices()

    assert len(store) == 3
    first = store[interval_key(START)]
    assert first.start == START
    assert first.end == START + timedelta(minutes=15)
    assert first.price == 0.1
    assert pm.last_update is not None


def test_merge_counts_new_updated_and_changed():
    pm = PriceManager(MockSource())
    pm.merge_entries(_entries([0.1, 0.2]))

    counts = pm.merge_entries(_entries([0.1, 0.25, 0.3]))

    assert counts == {"new": 1, "updated": 2, "price_changes": 1, "total": 3}
    assert pm.store[interval_key(START + timedelta(minutes=15))].price == 0.25


def test_store_property_is_a_copy():
    pm = PriceManager(MockSource(_entries([0.1])))
    pm.update_prices()

    pm.store.clear()

    assert len(pm.store) == 1


def test_fetch_failure_keeps_existing_store():
    source = MockSource(_entries([0.1, 0.2]))
    pm = PriceManager(source)
    pm.update_prices()

    pm.price_source = FailingSource()
    store = pm.update_prices()

    assert len(store) == 2
    assert "API down" in pm.last_error


def test_fallback_source_used_when_primary_fails():
    fallback = MockSource(_entries([0.4]))
    pm = PriceManager(FailingSource(), fallback_source=fallback)

    store = pm.update_prices()

    assert fallback.fetch_count == 1
    assert len(store) == 1
    assert pm.last_error is None


def test_fallback_not_used_when_primary_works():
    primary = MockSource(_entries([0.1]))
    fallback = MockSource(_entries([0.4]))
    pm = PriceManager(primary, fallback_source=fallback)

    pm.update_prices()

    assert fallback.fetch_count == 0


def test_cache_round_trip(tmp_path):
    cache_file = tmp_path / "price_cache.json"
    pm = PriceManager(MockSource(_entries([0.1, 0.2])), cache_file=str(cache_file))
    pm.update_prices()

    raw = json.loads(cache_file.read_text())
    assert raw[interval_key(START)]["start"] == int(START.timestamp() * 1000)

    reloaded = PriceManager(MockSource(), cache_file=str(cache_file))
    assert reloaded.store == pm.store


def test_corrupt_cache_starts_fresh(tmp_path):
    cache_file = tmp_path / "price_cache.json"
    cache_file.write_text("{not json")

    pm = PriceManager(MockSource(), cache_file=str(cache_file))

    assert pm.store == {}


def test_prune_drops_ended_intervals():
    pm = PriceManager(MockSource(_entries([0.1, 0.2, 0.3])))
    pm.update_prices()

    removed = pm.prune(START + timedelta(minutes=30))

    assert removed == 2
    assert list(pm.store) == [interval_key(START + timedelta(minutes=30))]


def test_find_cheapest_uses_store(cheap_midday_entries, now):
    pm = PriceManager(MockSource(cheap_midday_entries))
    pm.update_prices()

    cheapest = pm.find_cheapest(4, now)

    assert [interval.price for interval in cheapest] == [0.05] * 4
    assert cheapest[0].start == now


def test_selection_while_store_changes(cheap_midday_entries, now):
    pm = PriceManager(MockSource(cheap_midday_entries))
    pm.update_prices()
    errors = []
    done = threading.Event()

    def churn_store():
        try:
            while not done.is_set():
                pm.merge_entries(cheap_midday_entries)
                pm.prune(now)
        except Exception as e:
            errors.append(e)

    writer = threading.Thread(target=churn_store)
    writer.start()
    try:
        for _ in range(100):
            cheapest = pm.find_cheapest(4, now)
            assert [interval.price for interval in cheapest] == [0.05] * 4
    finally:
        done.set()
        writer.join(timeout=5)

    assert errors == []


def test_check_health_reports_source_and_cache():
    pm = PriceManager(MockSource(_entries([0.1])))
    pm.update_prices()

    [result] = pm.check_health()

    assert result["status"] == "OK"
    assert result["required"] is True
    assert {check["component"] for check in result["checks"]} == {"MockSource", "Price Cache"}


def test_check_health_with_failing_source():
    pm = PriceManager(FailingSource())

    [result] = pm.check_health()

    assert result["status"] == "ERROR"


def test_check_health_with_source_without_data():
    source = MagicMock(spec=PriceSource)
    source.perform_health_check.return_value = {
        "status": "WARNING",
        "checks": [{"component": "Mock", "status": "WARNING", "message": "empty"}],
    }
    pm = PriceManager(source)

    [result] = pm.check_health()

    assert result["status"] == "WARNING"


def test_create_price_source_tibber_falls_back_to_smard():
    primary, fallback = create_price_source(PriceSourceSettings(source="tibber"))

    assert isinstance(primary, TibberSource)
    assert primary.uses_demo_token
    assert isinstance(fallback, SmardSource)
    assert fallback.market_area == "DE-LU"


def test_create_price_source_other_sources():
    smard, no_fallback = create_price_source(
        PriceSourceSettings(source="smard", smard_market_area="AT")
    )
    smart_energy, _ = create_price_source(PriceSourceSettings(source="smartenergy"))

    assert isinstance(smard, SmardSource)
    assert smard.market_area == "AT"
    assert no_fallback is None
    assert isinstance(smart_energy, SmartEnergySource)
