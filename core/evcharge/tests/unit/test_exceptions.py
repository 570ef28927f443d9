"""Tests for error types and helpers."""

from core.evcharge.exceptions import (
    PriceDataUnavailableError,
    SystemConfigurationError,
    VehicleApiError,
    extract_error_message,
    truncate_error_message,
)


def test_extract_error_message():
    assert extract_error_message(ValueError("boom")) == "boom"
    assert extract_error_message(RuntimeError()) == "RuntimeError"
    assert extract_error_message("plain string") == "plain string"
    assert extract_error_message(42) == "42"


def test_truncate_error_message():
    assert truncate_error_message("x" * 250) == "x" * 200
    assert truncate_error_message("short") == "short"
    assert truncate_error_message("abcdef", 3) == "abc"


def test_default_messages():
    assert str(PriceDataUnavailableError()) == "Price data is not available"
    assert str(PriceDataUnavailableError(source="SMARD")) == "No price data available from SMARD"
    assert str(SystemConfigurationError(component="price")) == "Configuration error in price"


def test_vehicle_api_error_with_status():
    error = VehicleApiError("Get status failed", status_code=401, response_text="Unauthorized")

    assert str(error) == "Get status failed 401: Unauthorized"
    assert error.is_auth_error


def test_vehicle_api_error_without_status():
    error = VehicleApiError("Network error")

    assert str(error) == "Network error: Unknown error"
    assert error.status_code is None
    assert not error.is_auth_error


def test_vehicle_api_error_truncates_body():
    error = VehicleApiError("Get status failed", status_code=500, response_text="e" * 500)

    assert len(error.response_text) == 200
    assert not error.is_auth_error
    assert VehicleApiError("Forbidden", status_code=403).is_auth_error
