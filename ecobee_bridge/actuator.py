"""API client for TP-Link Kasa cloud smart plugs.

The cloud session (login and device enumeration) is created lazily on the
first command and reused for the rest of the run.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from .const import KASA_APP_TYPE, KASA_CLOUD_URL

_LOGGER = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


class KasaApiError(Exception):
    """Exception raised for Kasa cloud errors."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class KasaDevice:
    """A device registered to the Kasa cloud account.

    Attributes:
        id: Cloud device identifier.
        alias: User-assigned device name.
        app_server_url: Regional server that relays commands to the device.

    """

    id: str
    alias: str
    app_server_url: str


def validate_kasa_response(response: httpx.Response) -> dict[str, Any]:
    """Validate a Kasa cloud response and return its result object.

    Raises:
        KasaApiError: On HTTP failure or a non-zero error_code.

    """
    if response.status_code >= HTTP_BAD_REQUEST:
        error_msg = f"Request failed: {response.status_code}"
        raise KasaApiError(error_msg)

    try:
        data = response.json()
    except ValueError as err:
        error_msg = "Invalid JSON from Kasa cloud"
        raise KasaApiError(error_msg) from err

    if not isinstance(data, dict):
        error_msg = "Unexpected Kasa cloud response"
        raise KasaApiError(error_msg)

    code = data.get("error_code", 0)
    if code != 0:
        raise KasaApiError(data.get("msg", "Unknown Kasa error"), code)

    result = data.get("result", {})
    if not isinstance(result, dict):
        error_msg = "Unexpected Kasa cloud result"
        raise KasaApiError(error_msg)
    return result


def extract_devices(result: dict[str, Any]) -> list[KasaDevice]:
    """Extract device list from a getDeviceList result.

    Entries without a device id cannot be addressed and are skipped.
    """
    devices = []
    for d in result.get("deviceList", []):
        if not isinstance(d, dict) or not d.get("deviceId"):
            _LOGGER.debug("Skipping device entry without deviceId: %s", d)
            continue
        devices.append(
            KasaDevice(
                id=d["deviceId"],
                alias=d.get("alias", ""),
                app_server_url=d.get("appServerUrl") or KASA_CLOUD_URL,
            )
        )
    return devices


def build_relay_request(on: bool) -> str:
    """Build the passthrough payload switching the relay."""
    return json.dumps({"system": {"set_relay_state": {"state": 1 if on else 0}}})


def extract_relay_result(result: dict[str, Any]) -> bool:
    """Check the embedded err_code of a set_relay_state passthrough.

    Returns:
        True if the device confirmed the new relay state.

    """
    try:
        response_data = json.loads(result.get("responseData", ""))
        err_code = response_data["system"]["set_relay_state"]["err_code"]
    except (ValueError, KeyError, TypeError):
        _LOGGER.warning("Unexpected passthrough response: %s", result)
        return False
    return err_code == 0


class KasaCloudClient:
    """Switch Kasa smart plugs through the TP-Link cloud."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        username: str,
        password: str,
        terminal_uuid: str | None = None,
    ) -> None:
        self._session = session
        self._username = username
        self._password = password
        self._terminal_uuid = terminal_uuid or str(uuid.uuid4())
        self._token: str | None = None
        self._devices: dict[str, KasaDevice] | None = None

    async def _async_login(self) -> str:
        payload = {
            "method": "login",
            "params": {
                "appType": KASA_APP_TYPE,
                "cloudUserName": self._username,
                "cloudPassword": self._password,
                "terminalUUID": self._terminal_uuid,
            },
        }
        _LOGGER.debug("Logging in to Kasa cloud")
        response = await self._session.post(KASA_CLOUD_URL, json=payload)
        result = validate_kasa_response(response)
        try:
            return result["token"]
        except KeyError as err:
            error_msg = "Kasa login response missing token"
            raise KasaApiError(error_msg) from err

    async def _async_get_devices(self) -> dict[str, KasaDevice]:
        if self._token is None:
            self._token = await self._async_login()
        if self._devices is None:
            response = await self._session.post(
                KASA_CLOUD_URL,
                params={"token": self._token},
                json={"method": "getDeviceList"},
            )
            devices = extract_devices(validate_kasa_response(response))
            _LOGGER.debug("Retrieved %d devices from Kasa cloud", len(devices))
            self._devices = {device.alias: device for device in devices}
        return self._devices

    async def async_set_relay(self, alias: str, on: bool) -> bool:
        """Switch a plug's relay.

        Raises:
            KasaApiError: If the cloud rejects the request or the alias is unknown.
            httpx.RequestError: On transport failure.

        """
        devices = await self._async_get_devices()
        device = devices.get(alias)
        if device is None:
            error_msg = f"Unknown device: {alias}"
            raise KasaApiError(error_msg)

        payload = {
            "method": "passthrough",
            "params": {
                "deviceId": device.id,
                "requestData": build_relay_request(on),
            },
        }
        _LOGGER.debug("Setting relay of %s to %s", alias, "on" if on else "off")
        response = await self._session.post(
            device.app_server_url, params={"token": self._token}, json=payload
        )
        return extract_relay_result(validate_kasa_response(response))

    async def _async_power(self, alias: str, on: bool) -> bool:
        try:
            return await self.async_set_relay(alias, on)
        except KasaApiError:
            _LOGGER.exception("Kasa error while switching %s", alias)
        except httpx.RequestError:
            _LOGGER.exception("Connection error while switching %s", alias)
        return False

    async def async_power_on(self, alias: str) -> bool:
        """Turn a plug on, returning True on confirmed success."""
        return await self._async_power(alias, True)

    async def async_power_off(self, alias: str) -> bool:
        """Turn a plug off, returning True on confirmed success."""
        return await self._async_power(alias, False)
