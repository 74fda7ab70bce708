"""Data models for the ecobee bridge."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .const import (
    DEAD_BAND_INCLUSIVE,
    KEY_ACCESS_TOKEN,
    KEY_AUTH_CODE,
    KEY_DEVICE_STATE,
    KEY_PIN,
    KEY_REFRESH_TOKEN,
    KEY_TOKEN_TYPE,
    POWER_STATES,
)

_LOGGER = logging.getLogger(__name__)

_SNAPSHOT_KEYS = {
    KEY_AUTH_CODE,
    KEY_PIN,
    KEY_ACCESS_TOKEN,
    KEY_REFRESH_TOKEN,
    KEY_TOKEN_TYPE,
    KEY_DEVICE_STATE,
}


@dataclass(frozen=True)
class PinGrant:
    """A device-PIN grant issued by the authorize endpoint."""

    pin: str
    code: str
    expires_in: int | None = None
    interval: int | None = None
    scope: str | None = None


@dataclass(frozen=True)
class TokenResponse:
    """Validated fields of a token endpoint response.

    Attributes:
        access_token: Short-lived bearer token.
        token_type: Authorization scheme, usually "Bearer".
        refresh_token: Long-lived token, None when the provider did not rotate it.
        expires_in: Access token lifetime in seconds.
        scope: Granted scope.

    """

    access_token: str
    token_type: str
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None


@dataclass(frozen=True)
class CredentialSnapshot:
    """Persisted authorization and device state.

    Instances are immutable; every transition returns a new snapshot.
    """

    auth_code: str | None = None
    pin: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None
    device_state: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_authorized(self) -> bool:
        """Return True when a usable access token is held."""
        return bool(self.auth_code and self.access_token)

    def with_pin_grant(self, grant: PinGrant) -> CredentialSnapshot:
        """Start a fresh grant, discarding tokens from any earlier one."""
        return replace(
            self,
            auth_code=grant.code,
            pin=grant.pin,
            access_token=None,
            refresh_token=None,
            token_type=None,
        )

    def with_tokens(self, tokens: TokenResponse) -> CredentialSnapshot:
        """Merge a token response, keeping the refresh token unless rotated."""
        return replace(
            self,
            access_token=tokens.access_token,
            token_type=tokens.token_type,
            refresh_token=tokens.refresh_token or self.refresh_token,
        )

    def without_access_token(self) -> CredentialSnapshot:
        return replace(self, access_token=None)

    def without_auth_code(self) -> CredentialSnapshot:
        return replace(self, auth_code=None, pin=None)

    def with_device_state(self, device: str, state: str) -> CredentialSnapshot:
        """Record a confirmed power state for a device."""
        if state not in POWER_STATES:
            error_msg = f"Invalid power state: {state}"
            raise ValueError(error_msg)
        return replace(self, device_state={**self.device_state, device: state})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk document, omitting absent fields."""
        data: dict[str, Any] = {
            KEY_AUTH_CODE: self.auth_code,
            KEY_PIN: self.pin,
            KEY_ACCESS_TOKEN: self.access_token,
            KEY_REFRESH_TOKEN: self.refresh_token,
            KEY_TOKEN_TYPE: self.token_type,
        }
        data = {key: value for key, value in data.items() if value is not None}
        data[KEY_DEVICE_STATE] = dict(self.device_state)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CredentialSnapshot:
        """Build a snapshot from the on-disk document.

        Unknown keys and invalid device states are dropped with a warning.
        """
        unknown = set(data) - _SNAPSHOT_KEYS
        if unknown:
            _LOGGER.warning("Ignoring unknown snapshot keys: %s", sorted(unknown))

        raw_state = data.get(KEY_DEVICE_STATE) or {}
        if not isinstance(raw_state, Mapping):
            _LOGGER.warning("Ignoring device state that is not an object: %r", raw_state)
            raw_state = {}

        device_state: dict[str, str] = {}
        for device, state in raw_state.items():
            if state in POWER_STATES:
                device_state[str(device)] = state
            else:
                _LOGGER.warning(
                    "Dropping invalid recorded state %r for device %s", state, device
                )

        return cls(
            auth_code=data.get(KEY_AUTH_CODE) or None,
            pin=data.get(KEY_PIN) or None,
            access_token=data.get(KEY_ACCESS_TOKEN) or None,
            refresh_token=data.get(KEY_REFRESH_TOKEN) or None,
            token_type=data.get(KEY_TOKEN_TYPE) or None,
            device_state=device_state,
        )


@dataclass(frozen=True)
class ThermostatRuntime:
    """Summary of one thermostat (device group) from the runtime block."""

    name: str
    connected: bool
    temperature: float | None
    humidity: int | None


@dataclass(frozen=True)
class SensorReading:
    """A single remote sensor reading, flattened out of its device group."""

    group: str
    sensor: str
    temperature: float | None
    occupancy: bool = False


@dataclass(frozen=True)
class SensorRule:
    """Hysteresis configuration for one monitored sensor."""

    sensor: str
    device: str
    on_threshold: float
    off_threshold: float
    dead_band_policy: str = DEAD_BAND_INCLUSIVE
    alert_below: float | None = None
    alert_above: float | None = None


class Action(Enum):
    """Actuation decision for one reading."""

    NONE = "none"
    POWER_ON = "on"
    POWER_OFF = "off"
