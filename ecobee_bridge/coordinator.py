"""Token lifecycle and sensor polling against the ecobee API."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

import httpx

from . import api
from .const import (
    ERROR_AUTHORIZATION_EXPIRED,
    REASON_AUTH_CODE_EXPIRED,
    REASON_TOKEN_ERROR,
    STATUS_TOKEN_EXPIRED,
    UPSTREAM_EXPIRED,
    UPSTREAM_OTHER,
    UPSTREAM_TRANSIENT,
)
from .exceptions import AuthorizationPending, TokenExchangeFailed, UpstreamError
from .models import CredentialSnapshot, SensorReading

if TYPE_CHECKING:
    from .journal import Journal
    from .notify import EmailNotifier
    from .store import CredentialStore

_LOGGER = logging.getLogger(__name__)


class TokenLifecycleManager:
    """Drive the PIN grant / token exchange state machine.

    Unauthenticated (no auth code) -> PendingUserAuthorization (auth code,
    no access token) -> Authorized (access token). Every transition is
    persisted before the method returns or raises.
    """

    def __init__(
        self,
        session: httpx.AsyncClient,
        store: CredentialStore,
        notifier: EmailNotifier,
        journal: Journal,
        client_id: str,
        scope: str,
    ) -> None:
        """Initialize the manager.

        Args:
            session: HTTP client session.
            store: Snapshot persistence.
            notifier: Operator alerts.
            journal: Run journal.
            client_id: Application API key.
            scope: Scope requested with new PIN grants.

        """
        self.session = session
        self.store = store
        self.notifier = notifier
        self.journal = journal
        self.client_id = client_id
        self.scope = scope

    async def async_ensure_authorized(
        self, snapshot: CredentialSnapshot
    ) -> CredentialSnapshot:
        """Return an authorized snapshot, or raise why the run must halt.

        Raises:
            AuthorizationPending: A new PIN was issued and awaits the user.
            TokenExchangeFailed: The token endpoint rejected the exchange.
            UpstreamError: The provider could not be reached.

        """
        if snapshot.is_authorized:
            _LOGGER.debug("Access token present, no exchange needed")
            return snapshot

        if not snapshot.auth_code:
            pin = await self._async_request_pin(snapshot)
            raise AuthorizationPending(pin)

        return await self._async_exchange_token(snapshot)

    async def _async_request_pin(self, snapshot: CredentialSnapshot) -> str:
        try:
            grant = await api.async_request_pin(self.session, self.client_id, self.scope)
        except api.EcobeeApiClientError as err:
            error_msg = f"PIN request failed: {err}"
            _LOGGER.exception("API error while requesting PIN")
            raise UpstreamError(UPSTREAM_OTHER, message=error_msg) from err
        except httpx.RequestError as err:
            error_msg = f"Connection error while requesting PIN: {err}"
            _LOGGER.exception("Connection error while requesting PIN")
            raise UpstreamError(UPSTREAM_TRANSIENT, message=error_msg) from err

        self.store.save(snapshot.with_pin_grant(grant))
        _LOGGER.warning(
            "User action required: add the application in My Apps with PIN %s",
            grant.pin,
        )
        self.journal.write(
            "** User Action Required ** Go to 'My Apps' > 'Add Application' "
            "and enter this PIN: %s",
            grant.pin,
        )
        await self.notifier.async_send(
            "!App Auth Required",
            "You need to re-authorize the ecobee app. Go to 'My Apps' > "
            f"'Add Application' and enter this PIN: {grant.pin}",
        )
        return grant.pin

    async def _async_exchange_token(
        self, snapshot: CredentialSnapshot
    ) -> CredentialSnapshot:
        if snapshot.refresh_token:
            grant_type, code = api.GRANT_TYPE_REFRESH, snapshot.refresh_token
        else:
            grant_type, code = api.GRANT_TYPE_PIN, snapshot.auth_code

        _LOGGER.info("Updating access token with %s grant", grant_type)
        try:
            tokens = await api.async_request_token(
                self.session, self.client_id, grant_type, code
            )
        except api.EcobeeTokenError as err:
            self.journal.warning("Token error: %s (%s)", err.error, err.description)
            if err.error == ERROR_AUTHORIZATION_EXPIRED:
                self.store.save(snapshot.without_auth_code())
                raise TokenExchangeFailed(
                    REASON_AUTH_CODE_EXPIRED, err.description
                ) from err
            self.store.save(snapshot.without_access_token())
            raise TokenExchangeFailed(REASON_TOKEN_ERROR, err.description) from err
        except api.EcobeeApiClientError as err:
            _LOGGER.exception("API error during token exchange")
            self.journal.warning("Token error: %s", err)
            self.store.save(snapshot.without_access_token())
            raise TokenExchangeFailed(REASON_TOKEN_ERROR, str(err)) from err
        except httpx.RequestError as err:
            error_msg = f"Connection error during token exchange: {err}"
            _LOGGER.exception("Connection error during token exchange")
            raise UpstreamError(UPSTREAM_TRANSIENT, message=error_msg) from err

        snapshot = snapshot.with_tokens(tokens)
        self.store.save(snapshot)
        _LOGGER.info("Successfully obtained access token")
        self.journal.write("Access token updated (%s grant)", grant_type)
        return snapshot


class SensorPoller:
    """Fetch thermostat data with the current access token."""

    def __init__(self, session: httpx.AsyncClient, store: CredentialStore) -> None:
        self.session = session
        self.store = store

    async def async_fetch_readings(
        self, snapshot: CredentialSnapshot
    ) -> tuple[CredentialSnapshot, list[dict[str, Any]]]:
        """Fetch all registered thermostats.

        Returns:
            The (possibly updated) snapshot and the raw thermostat list.

        Raises:
            UpstreamError: "expired" after clearing the access token, "other"
                for any other embedded or HTTP failure, "transient" for
                connection failures and timeouts.

        """
        try:
            thermostats = await api.async_get_thermostats(
                self.session, snapshot.token_type, snapshot.access_token
            )
        except api.EcobeeApiAuthError as err:
            _LOGGER.warning("Access token expired, clearing it for retry: %s", err)
            self.store.save(snapshot.without_access_token())
            raise UpstreamError(
                UPSTREAM_EXPIRED,
                STATUS_TOKEN_EXPIRED,
                f"API-Error: {err}; cleared access token for retry",
            ) from err
        except api.EcobeeApiClientError as err:
            _LOGGER.error("API error while polling thermostats: %s", err)
            raise UpstreamError(
                UPSTREAM_OTHER, err.code, f"API-Error: {err}"
            ) from err
        except httpx.RequestError as err:
            _LOGGER.error("Connection error while polling thermostats: %s", err)
            raise UpstreamError(
                UPSTREAM_TRANSIENT, message=f"Connection error: {err}"
            ) from err

        return snapshot, thermostats


def iter_sensor_readings(
    thermostats: Iterable[dict[str, Any]],
) -> Iterator[SensorReading]:
    """Flatten thermostats into their remote sensor readings.

    Sensors of disconnected thermostats are skipped with a warning.
    """
    for thermostat in thermostats:
        runtime = api.extract_runtime(thermostat)
        if not runtime.connected:
            _LOGGER.warning("Thermostat NOT connected: %s", runtime.name)
            continue
        for sensor in thermostat.get("remoteSensors", []):
            yield api.extract_sensor_reading(runtime.name, sensor)
