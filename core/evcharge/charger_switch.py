"""Charger actuation.

The controller switches charging through a ChargerSwitch. In production that
is a Home Assistant switch entity (for example a wallbox relay) driven over
the Home Assistant REST API.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class ChargerSwitch:
    """Interface for turning charging on and off."""

    def set_charging(self, on: bool) -> None:
        """Switch charging on or off.

        Raises:
            Exception: If the switch could not be actuated
        """
        raise NotImplementedError("Charger switches must implement set_charging")

    def is_on(self) -> bool | None:
        """Current switch state, None if unknown."""
        raise NotImplementedError("Charger switches must implement is_on")


class MockSwitch(ChargerSwitch):
    """Switch that records calls, optionally failing them."""

    def __init__(self, initial: bool = False, fail: bool = False) -> None:
        self.state = initial
        self.fail = fail
        self.calls: list[bool] = []

    def set_charging(self, on: bool) -> None:
        self.calls.append(on)
        if self.fail:
            raise RuntimeError("Simulated switch failure")
        self.state = on

    def is_on(self) -> bool | None:
        return self.state


class HomeAssistantSwitch(ChargerSwitch):
    """Switch entity controlled through the Home Assistant REST API."""

    def __init__(
        self, ha_url: str, token: str, entity_id: str, timeout: float = 30
    ) -> None:
        """Initialize the switch.

        Args:
            ha_url: Base URL of Home Assistant (e.g. "http://supervisor/core")
            token: Long-lived access token
            entity_id: Switch entity, e.g. "switch.wallbox_charging"
            timeout: Request timeout in seconds
        """
        self.base_url = ha_url.rstrip("/")
        self.entity_id = entity_id
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self.test_mode = False

    def set_test_mode(self, enabled: bool) -> None:
        """In test mode write operations are only logged."""
        self.test_mode = enabled

    def set_charging(self, on: bool) -> None:
        service = "turn_on" if on else "turn_off"
        path = f"/api/services/switch/{service}"

        if self.test_mode:
            logger.info(
                "[TEST MODE] Would call POST %s with args: %s",
                path,
                {"entity_id": self.entity_id},
            )
            return

        response = requests.post(
            f"{self.base_url}{path}",
            headers=self.headers,
            json={"entity_id": self.entity_id},
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.debug("Called switch.%s for %s", service, self.entity_id)

    def is_on(self) -> bool | None:
        try:
            response = requests.get(
                f"{self.base_url}/api/states/{self.entity_id}",
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Could not read %s state: %s", self.entity_id, e)
            return None
        return response.json().get("state") == "on"
