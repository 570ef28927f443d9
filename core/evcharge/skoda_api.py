"""Skoda Connect (MySkoda) REST API client.

Read-only access to vehicle status, charging status and the garage. The
access token is supplied by the caller; obtaining or refreshing it is out of
scope, and requests are not retried.
"""

import logging
from datetime import datetime

import requests

from .exceptions import VehicleApiError, extract_error_message
from .time_utils import now_utc

logger = logging.getLogger(__name__)

BASE_URL = "https://mysmob.api.connect.skoda-auto.cz"
CONNECTIVITY_GENERATIONS = ("MOD1", "MOD2", "MOD3", "MOD4")


def build_status_url(vin: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/api/v2/vehicle-status/{vin}"


def build_charging_url(vin: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/api/v1/charging/{vin}"


def build_garage_url(base_url: str = BASE_URL) -> str:
    params = "&".join(
        f"connectivityGenerations={generation}"
        for generation in CONNECTIVITY_GENERATIONS
    )
    return f"{base_url}/api/v2/garage?{params}"


def build_vehicle_info_url(vin: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/api/v2/garage/vehicles/{vin}"


def map_vehicle_info(data: dict) -> dict:
    """Pick the display fields out of a garage vehicle document."""
    return {
        "name": data.get("name") or "",
        "license_plate": data.get("licensePlate"),
        "composite_renders": data.get("compositeRenders") or [],
        "specification": data.get("specification"),
    }


def create_auth_headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


class SkodaApiClient:
    """Thin wrapper around a requests.Session for the vehicle API."""

    def __init__(
        self,
        access_token: str,
        base_url: str = BASE_URL,
        timeout: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(create_auth_headers(access_token))

    def _get(self, url: str, error_message: str):
        """GET a JSON document.

        Raises:
            VehicleApiError: Network failure, non-2xx status or invalid JSON
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise VehicleApiError("Network error", response_text=extract_error_message(e)) from e

        if not response.ok:
            error = VehicleApiError(
                error_message,
                status_code=response.status_code,
                response_text=response.text,
            )
            if error.is_auth_error:
                logger.error("Authentication error detected (401/403)")
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise VehicleApiError("JSON parse error", response_text=extract_error_message(e)) from e

    def fetch_vehicle_status(self, vin: str) -> dict:
        """Fetch vehicle status and charging information.

        Returns:
            {"status": ..., "charging": ..., "timestamp": ISO string}
        """
        status = self._get(build_status_url(vin, self.base_url), "Get status failed")
        charging = self._get(
            build_charging_url(vin, self.base_url), "Get charging status failed"
        )
        return {
            "status": status,
            "charging": charging,
            "timestamp": now_utc().isoformat(),
        }

    def fetch_vehicles(self) -> list[dict]:
        """List vehicles in the account's garage."""
        data = self._get(build_garage_url(self.base_url), "List vehicles failed")
        return data.get("vehicles") or []

    def fetch_vehicle_info(self, vin: str) -> dict:
        """Fetch name, licence plate, renders and specification of a vehicle."""
        data = self._get(
            build_vehicle_info_url(vin, self.base_url), "Get vehicle info failed"
        )
        return map_vehicle_info(data)


class MockVehicleClient:
    """In-memory vehicle client for tests and demo mode."""

    def __init__(
        self,
        payload: dict | None = None,
        error: Exception | None = None,
        vehicles: list[dict] | None = None,
        info: dict | None = None,
    ):
        self.payload = payload
        self.error = error
        self.vehicles = vehicles or []
        self.info = info or {}
        self.calls: list[str] = []
        self.last_fetch: datetime | None = None

    def fetch_vehicle_status(self, vin: str) -> dict:
        self.calls.append(vin)
        self.last_fetch = now_utc()
        if self.error is not None:
            raise self.error
        return self.payload

    def fetch_vehicles(self) -> list[dict]:
        if self.error is not None:
            raise self.error
        return list(self.vehicles)

    def fetch_vehicle_info(self, vin: str) -> dict:
        if self.error is not None:
            raise self.error
        return map_vehicle_info(self.info)
