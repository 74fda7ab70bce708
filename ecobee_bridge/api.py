"""API client for the ecobee cloud.

This module provides functions to interact with the ecobee API,
including the PIN authorization flow, token exchange and thermostat polling.
"""

import json
import logging
from typing import Any

import httpx
from httpx_retries import Retry, RetryTransport

from .const import (
    AUTHORIZE_URL,
    DEFAULT_TIMEOUT,
    STATUS_OK,
    STATUS_TOKEN_EXPIRED,
    THERMOSTAT_URL,
    TOKEN_URL,
)
from .models import PinGrant, SensorReading, ThermostatRuntime, TokenResponse

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400

GRANT_TYPE_PIN = "ecobeePin"
GRANT_TYPE_REFRESH = "refresh_token"


class EcobeeApiClientError(Exception):
    """Base exception for ecobee API client errors."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class EcobeeApiAuthError(EcobeeApiClientError):
    """Exception raised when the access token has expired."""


class EcobeeTokenError(EcobeeApiClientError):
    """Exception raised when the authorize or token endpoint reports an error."""

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(description or error)
        self.error = error
        self.description = description


def create_headers(
    token_type: str | None = None, access_token: str | None = None
) -> dict[str, str]:
    """Create HTTP headers for ecobee API requests.

    Args:
        token_type: Authorization scheme returned with the token.
        access_token: Optional access token to include in headers.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {
        "Content-Type": "text/json",
        "Accept": "application/json",
    }
    if access_token:
        headers["Authorization"] = f"{token_type or 'Bearer'} {access_token}"
    return headers


def build_selection() -> str:
    """Build the thermostat selection query for all registered thermostats."""
    return json.dumps(
        {
            "selection": {
                "selectionType": "registered",
                "selectionMatch": "",
                "includeSensors": True,
                "includeRuntime": True,
            },
        },
        separators=(",", ":"),
    )


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error."""
    return status >= HTTP_BAD_REQUEST


def extract_status(data: dict[str, Any]) -> tuple[int, str]:
    """Extract the embedded status code and message from API response data.

    A missing status object counts as success.
    """
    status = data.get("status") or {}
    try:
        code = int(status.get("code", STATUS_OK))
    except (TypeError, ValueError):
        code = -1
    return code, str(status.get("message", "Unknown API error"))


def is_api_error(data: dict[str, Any]) -> bool:
    """Check if API response carries a non-zero embedded status code."""
    code, _ = extract_status(data)
    return code != STATUS_OK


def is_auth_api_error(data: dict[str, Any]) -> bool:
    """Check if API response reports an expired access token."""
    code, _ = extract_status(data)
    return code == STATUS_TOKEN_EXPIRED


def _parse_json(response: httpx.Response) -> dict[str, Any] | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def validate_response(response: httpx.Response) -> dict[str, Any]:
    """Validate a thermostat API response and return parsed JSON data.

    Transport errors and embedded failure codes are the same class of
    error: the body of a failed HTTP response is inspected for an embedded
    status before falling back to the HTTP status.

    Raises:
        EcobeeApiAuthError: If the embedded code reports an expired token.
        EcobeeApiClientError: For any other failure.

    """
    data = _parse_json(response)

    if data is not None and is_api_error(data):
        code, message = extract_status(data)
        if is_auth_api_error(data):
            raise EcobeeApiAuthError(message, code)
        raise EcobeeApiClientError(message, code)

    if is_http_error(response.status_code) or data is None:
        client_error = f"Request failed: {response.status_code}"
        raise EcobeeApiClientError(client_error)

    return data


def validate_token_response(response: httpx.Response) -> dict[str, Any]:
    """Validate an authorize/token endpoint response.

    These endpoints report failures as an ``error`` field, usually with an
    HTTP 4xx status.

    Raises:
        EcobeeTokenError: If the provider reported an error.
        EcobeeApiClientError: If the response cannot be interpreted.

    """
    data = _parse_json(response)

    if data is not None and data.get("error"):
        raise EcobeeTokenError(str(data["error"]), data.get("error_description"))

    if is_http_error(response.status_code) or data is None:
        client_error = f"Request failed: {response.status_code}"
        raise EcobeeApiClientError(client_error)

    return data


def _optional_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def extract_pin_grant(data: dict[str, Any]) -> PinGrant:
    """Extract the PIN and authorization code from an authorize response."""
    try:
        return PinGrant(
            pin=str(data["ecobeePin"]),
            code=str(data["code"]),
            expires_in=_optional_int(data.get("expires_in")),
            interval=_optional_int(data.get("interval")),
            scope=data.get("scope"),
        )
    except KeyError as err:
        error_msg = f"Authorize response missing field: {err}"
        raise EcobeeApiClientError(error_msg) from err


def extract_token_response(data: dict[str, Any]) -> TokenResponse:
    """Extract the known token fields, ignoring anything else.

    Raises:
        EcobeeApiClientError: If the access token or token type is missing.

    """
    access_token = data.get("access_token")
    token_type = data.get("token_type")
    if not access_token or not token_type:
        error_msg = "Token response missing access_token or token_type"
        raise EcobeeApiClientError(error_msg)

    unexpected = set(data) - {
        "access_token",
        "token_type",
        "refresh_token",
        "expires_in",
        "scope",
    }
    if unexpected:
        _LOGGER.debug("Ignoring unexpected token fields: %s", sorted(unexpected))

    return TokenResponse(
        access_token=str(access_token),
        token_type=str(token_type),
        refresh_token=data.get("refresh_token") or None,
        expires_in=_optional_int(data.get("expires_in")),
        scope=data.get("scope"),
    )


def decode_temperature(raw: Any) -> float | None:
    """Convert tenths of a degree Fahrenheit to Celsius, one decimal.

    Returns:
        Temperature in Celsius or None if the sensor reports no value.

    """
    try:
        tenths_f = float(raw)
    except (TypeError, ValueError):
        return None
    return round((tenths_f - 320) * 5 / 90, 1)


def extract_thermostats(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Extract the thermostat list from a thermostat API response."""
    return data.get("thermostatList", [])


def extract_runtime(thermostat: dict[str, Any]) -> ThermostatRuntime:
    """Extract the connection flag and overall readings of a thermostat."""
    runtime = thermostat.get("runtime", {})
    return ThermostatRuntime(
        name=str(thermostat.get("name", "")),
        connected=bool(runtime.get("connected", False)),
        temperature=decode_temperature(runtime.get("actualTemperature")),
        humidity=_optional_int(runtime.get("actualHumidity")),
    )


def extract_sensor_reading(group: str, sensor: dict[str, Any]) -> SensorReading:
    """Extract temperature and occupancy from a remote sensor's capabilities."""
    temperature = None
    occupancy = False
    for capability in sensor.get("capability", []):
        if capability.get("type") == "temperature":
            temperature = decode_temperature(capability.get("value"))
        elif capability.get("type") == "occupancy":
            occupancy = str(capability.get("value")).lower() == "true"

    return SensorReading(
        group=group,
        sensor=str(sensor.get("name", "")),
        temperature=temperature,
        occupancy=occupancy,
    )


def create_session_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create HTTP client with retry logic for the cloud APIs.

    Args:
        timeout: Per-request timeout in seconds.

    Returns:
        Configured httpx AsyncClient with retry transport.

    """
    retry = Retry(total=3, backoff_factor=0.5)
    return httpx.AsyncClient(
        transport=RetryTransport(transport=httpx.AsyncHTTPTransport(), retry=retry),
        timeout=timeout,
    )


async def async_request_pin(
    session: httpx.AsyncClient,
    client_id: str,
    scope: str,
) -> PinGrant:
    """Request a new PIN grant the user has to approve in the ecobee portal.

    Args:
        session: HTTP client session.
        client_id: Application API key.
        scope: Requested scope.

    Returns:
        The issued PinGrant.

    Raises:
        EcobeeTokenError: If the provider rejects the request.
        EcobeeApiClientError: If API request fails.

    """
    params = {"response_type": "ecobeePin", "client_id": client_id, "scope": scope}

    _LOGGER.debug("Requesting PIN grant from ecobee")
    response = await session.get(AUTHORIZE_URL, params=params)
    data = validate_token_response(response)
    grant = extract_pin_grant(data)
    _LOGGER.debug("Received PIN grant, expires in %s minutes", grant.expires_in)
    return grant


async def async_request_token(
    session: httpx.AsyncClient,
    client_id: str,
    grant_type: str,
    code: str,
) -> TokenResponse:
    """Exchange an authorization code or refresh token for an access token.

    Args:
        session: HTTP client session.
        client_id: Application API key.
        grant_type: GRANT_TYPE_PIN or GRANT_TYPE_REFRESH.
        code: Authorization code or refresh token.

    Returns:
        The validated TokenResponse.

    Raises:
        EcobeeTokenError: If the provider reports an error.
        EcobeeApiClientError: If API request fails.

    """
    payload = {"grant_type": grant_type, "code": code, "client_id": client_id}

    _LOGGER.debug("Requesting access token with %s grant", grant_type)
    response = await session.post(TOKEN_URL, data=payload)
    data = validate_token_response(response)
    tokens = extract_token_response(data)
    _LOGGER.debug("Successfully obtained access token")
    return tokens


async def async_get_thermostats(
    session: httpx.AsyncClient,
    token_type: str | None,
    access_token: str,
) -> list[dict[str, Any]]:
    """Fetch registered thermostats with runtime and remote sensors.

    Args:
        session: HTTP client session.
        token_type: Authorization scheme.
        access_token: Current access token.

    Returns:
        Raw thermostat objects.

    Raises:
        EcobeeApiAuthError: If the access token has expired.
        EcobeeApiClientError: If API request fails.

    """
    headers = create_headers(token_type, access_token)
    params = {"json": build_selection()}

    _LOGGER.debug("Fetching thermostats from ecobee API")
    response = await session.get(THERMOSTAT_URL, headers=headers, params=params)
    data = validate_response(response)
    thermostats = extract_thermostats(data)
    _LOGGER.debug("Retrieved %d thermostats from ecobee API", len(thermostats))
    return thermostats
