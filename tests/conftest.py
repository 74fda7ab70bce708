"""Pytest configuration and fixtures for ecobee bridge tests."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from ecobee_bridge.journal import Journal
from ecobee_bridge.models import CredentialSnapshot, SensorRule
from ecobee_bridge.store import CredentialStore


def tenths_f(celsius: float) -> int:
    """Encode a Celsius value the way ecobee reports temperatures."""
    return round(celsius * 90 / 5 + 320)


def make_thermostat(
    name: str = "Main Floor",
    *,
    connected: bool = True,
    sensors: list[tuple[str, Any, bool]] | None = None,
) -> dict[str, Any]:
    """Build a thermostat object with remote sensors.

    Args:
        name: Thermostat name.
        connected: Runtime connected flag.
        sensors: (name, raw temperature value, occupied) tuples.

    Returns:
        A thermostat dictionary as found in thermostatList.

    """
    if sensors is None:
        sensors = [("Sunroom", tenths_f(13.0), False)]
    return {
        "identifier": "311000000001",
        "name": name,
        "runtime": {
            "connected": connected,
            "actualTemperature": tenths_f(21.0),
            "actualHumidity": 40,
        },
        "remoteSensors": [
            {
                "id": f"rs:{index}",
                "name": sensor_name,
                "type": "ecobee3_remote_sensor",
                "capability": [
                    {"id": "1", "type": "temperature", "value": str(raw)},
                    {"id": "2", "type": "occupancy", "value": str(occupied).lower()},
                ],
            }
            for index, (sensor_name, raw, occupied) in enumerate(sensors)
        ],
    }


@pytest.fixture
def sample_pin_response() -> dict[str, Any]:
    """Fixture providing a sample authorize (PIN grant) response."""
    return {
        "ecobeePin": "ab12",
        "code": "auth-code-1",
        "scope": "smartRead",
        "expires_in": 9,
        "interval": 30,
    }


@pytest.fixture
def sample_token_response() -> dict[str, Any]:
    """Fixture providing a sample token endpoint response."""
    return {
        "access_token": "access-1",
        "token_type": "Bearer",
        "refresh_token": "refresh-1",
        "expires_in": 3599,
        "scope": "smartRead",
    }


@pytest.fixture
def sample_thermostat_response() -> dict[str, Any]:
    """Fixture providing a sample thermostat polling response."""
    return {
        "page": {"page": 1, "totalPages": 1, "pageSize": 1, "total": 1},
        "thermostatList": [make_thermostat()],
        "status": {"code": 0, "message": ""},
    }


@pytest.fixture
def authorized_snapshot() -> CredentialSnapshot:
    """Fixture providing a fully authorized snapshot."""
    return CredentialSnapshot(
        auth_code="auth-code-1",
        pin="ab12",
        access_token="access-1",
        refresh_token="refresh-1",
        token_type="Bearer",
        device_state={"SunroomHeater": "on"},
    )


@pytest.fixture
def sunroom_rule() -> SensorRule:
    """Fixture providing the Sunroom heater rule."""
    return SensorRule(
        sensor="Sunroom",
        device="SunroomHeater",
        on_threshold=11.0,
        off_threshold=12.0,
        alert_below=5.0,
    )


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "settings.json"


@pytest.fixture
def store(settings_path: Path) -> CredentialStore:
    return CredentialStore(settings_path)


@pytest.fixture
def journal(tmp_path: Path) -> Journal:
    """Fixture providing a journal in a temp dir, closed after the test."""
    journal = Journal(tmp_path / "ecobee.log", echo=False)
    yield journal
    journal.close()


@pytest.fixture
def mock_notifier() -> Mock:
    """Create a mock notifier that always delivers."""
    notifier = Mock()
    notifier.async_send = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def mock_actuator() -> Mock:
    """Create a mock actuator that confirms every command."""
    actuator = Mock()
    actuator.async_power_on = AsyncMock(return_value=True)
    actuator.async_power_off = AsyncMock(return_value=True)
    return actuator
