"""Tests for the HTTP price sources with mocked requests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from core.evcharge.exceptions import PriceDataUnavailableError
from core.evcharge.models import PriceEntry
from core.evcharge.smard_source import (
    ENTRIES_PER_DAY,
    SmardSource,
    filter_recent_entries,
)
from core.evcharge.smartenergy_source import SmartEnergySource
from core.evcharge.tibber_source import TIBBER_API_URL, TIBBER_DEMO_TOKEN, TibberSource
from core.evcharge.time_utils import to_epoch_ms

UTC = timezone.utc
NOW = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


def _response(payload=None, error=None):
    response = MagicMock()
    response.json.return_value = payload
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


def _tibber_payload(today, tomorrow=None):
    return {
        "data": {
            "viewer": {
                "homes": [
                    {
                        "currentSubscription": {
                            "priceInfo": {
                                "today": today,
                                "tomorrow": tomorrow or [],
                            }
                        }
                    }
                ]
            }
        }
    }


class TestTibberSource:
    def test_demo_token_used_by_default(self):
        assert TibberSource().token == TIBBER_DEMO_TOKEN
        assert TibberSource(token="demo").uses_demo_token
        assert not TibberSource(token="secret").uses_demo_token

    @patch("core.evcharge.tibber_source.requests.post")
    def test_fetch_parses_today_and_tomorrow(self, mock_post):
        mock_post.return_value = _response(
            _tibber_payload(
                today=[
                    {"total": 0.2512, "startsAt": "2025-01-15T00:00:00.000+01:00", "currency": "EUR"},
                    {"total": "0.2400", "startsAt": "2025-01-15T00:15:00.000+01:00", "currency": "EUR"},
                ],
                tomorrow=[
                    {"total": 0.19, "startsAt": "2025-01-16T00:00:00.000+01:00", "currency": "EUR"},
                ],
            )
        )

        entries = TibberSource(token="secret").fetch()

        assert len(entries) == 3
        assert entries[0].start == datetime(2025, 1, 14, 23, 0, tzinfo=UTC)
        assert entries[1].price == 0.24
        args, kwargs = mock_post.call_args
        assert args[0] == TIBBER_API_URL
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert "QUARTER_HOURLY" in kwargs["json"]["query"]

    @patch("core.evcharge.tibber_source.requests.post")
    def test_graphql_errors_raise(self, mock_post):
        mock_post.return_value = _response({"errors": [{"message": "invalid token"}]})

        with pytest.raises(PriceDataUnavailableError, match="invalid token"):
            TibberSource().fetch()

    @patch("core.evcharge.tibber_source.requests.post")
    def test_missing_homes_raise(self, mock_post):
        mock_post.return_value = _response({"data": {"viewer": {"homes": []}}})

        with pytest.raises(PriceDataUnavailableError, match="Invalid response structure"):
            TibberSource().fetch()

    @patch("core.evcharge.tibber_source.requests.post")
    def test_http_error_raises(self, mock_post):
        mock_post.return_value = _response(error=requests.HTTPError("500 Server Error"))

        with pytest.raises(PriceDataUnavailableError, match="Tibber API failed"):
            TibberSource().fetch()


class TestSmardSource:
    def test_invalid_market_area(self):
        with pytest.raises(PriceDataUnavailableError, match="Invalid market area"):
            SmardSource("XX")

    def test_urls(self):
        source = SmardSource("AT")

        assert source.index_url == (
            "https://www.smard.de/app/chart_data/4170/AT/index_quarterhour.json"
        )
        assert source.series_url(1736118000000).endswith(
            "/4170/AT/4170_AT_quarterhour_1736118000000.json"
        )

    @patch("core.evcharge.smard_source.now_utc", return_value=NOW)
    @patch("core.evcharge.smard_source.requests.get")
    def test_fetch_uses_last_two_series(self, mock_get, _now):
        start = NOW.replace(hour=0)
        series = [
            [to_epoch_ms(start), 120.0],
            [to_epoch_ms(start + timedelta(minutes=15)), None],
            [to_epoch_ms(start + timedelta(minutes=30)), -5.5],
        ]

        def fake_get(url, timeout):
            if url.endswith("index_quarterhour.json"):
                return _response({"timestamps": [1, 2, 3]})
            if url.endswith("_2.json"):
                return _response({"series": series})
            if url.endswith("_3.json"):
                return _response({"series": []})
            raise AssertionError(f"unexpected url {url}")

        mock_get.side_effect = fake_get

        entries = SmardSource().fetch()

        assert entries == [
            PriceEntry(start=start, price=0.12),
            PriceEntry(start=start + timedelta(minutes=30), price=-0.0055),
        ]
        assert mock_get.call_count == 3

    @patch("core.evcharge.smard_source.requests.get")
    def test_index_failure_raises(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(PriceDataUnavailableError, match="index failed"):
            SmardSource().fetch()

    @patch("core.evcharge.smard_source.requests.get")
    def test_empty_index_raises(self, mock_get):
        mock_get.return_value = _response({"timestamps": []})

        with pytest.raises(PriceDataUnavailableError, match="No timestamps"):
            SmardSource().fetch()


def _entries_for_days(first_day: datetime, days: int) -> list[PriceEntry]:
    return [
        PriceEntry(start=first_day + timedelta(minutes=15 * i), price=0.1)
        for i in range(days * ENTRIES_PER_DAY)
    ]


def test_filter_keeps_two_days_when_latest_is_today():
    entries = _entries_for_days(NOW.replace(hour=0) - timedelta(days=3), 4)

    result = filter_recent_entries(list(reversed(entries)), NOW)

    assert len(result) == 2 * ENTRIES_PER_DAY
    assert result[0].start == NOW.replace(hour=0) - timedelta(days=1)
    assert result == sorted(result, key=lambda entry: entry.start)


def test_filter_keeps_three_days_when_tomorrow_published():
    entries = _entries_for_days(NOW.replace(hour=0) - timedelta(days=3), 5)

    result = filter_recent_entries(entries, NOW)

    assert len(result) == 3 * ENTRIES_PER_DAY
    assert result[0].start == NOW.replace(hour=0) - timedelta(days=1)


def test_filter_empty():
    assert filter_recent_entries([], NOW) == []


class TestSmartEnergySource:
    @patch("core.evcharge.smartenergy_source.requests.get")
    def test_fetch_converts_cents(self, mock_get):
        mock_get.return_value = _response(
            {
                "tariff": "EPEXSPOTAT",
                "unit": "ct/kWh",
                "interval": 15,
                "data": [
                    {"date": "2025-01-15T00:00:00+01:00", "value": 12.5},
                    {"date": "2025-01-15T00:15:00+01:00", "value": -1.2},
                ],
            }
        )

        entries = SmartEnergySource().fetch()

        assert [entry.price for entry in entries] == pytest.approx([0.125, -0.012])
        assert entries[0].start == datetime(2025, 1, 14, 23, 0, tzinfo=UTC)

    @patch("core.evcharge.smartenergy_source.requests.get")
    def test_hourly_interval_rejected(self, mock_get):
        mock_get.return_value = _response({"interval": 60, "data": []})

        with pytest.raises(PriceDataUnavailableError, match="interval of 60 minutes"):
            SmartEnergySource().fetch()
