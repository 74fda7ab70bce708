"""Bridge ecobee remote sensor readings to Kasa smart plugs."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from . import api
from .actuator import KasaCloudClient
from .controller import HysteresisController
from .coordinator import SensorPoller, TokenLifecycleManager, iter_sensor_readings
from .exceptions import AuthorizationPending, TokenExchangeFailed, UpstreamError
from .journal import Journal
from .notify import EmailNotifier
from .store import CredentialStore

if TYPE_CHECKING:
    from .config import BridgeConfig

_LOGGER = logging.getLogger(__name__)


class RunOutcome(Enum):
    """How an invocation ended; the value is the process exit status."""

    COMPLETED = 0
    CONFIG_ERROR = 1
    AUTHORIZATION_PENDING = 2
    TOKEN_EXCHANGE_FAILED = 3
    UPSTREAM_ERROR = 4
    STORAGE_ERROR = 5

    @property
    def exit_code(self) -> int:
        return self.value


async def async_run(
    config: BridgeConfig,
    session: httpx.AsyncClient | None = None,
) -> RunOutcome:
    """Run one authorize, poll, decide and actuate cycle.

    Args:
        config: Validated options.
        session: HTTP client to use; a retrying client is created and
            closed here when None.

    Returns:
        The RunOutcome; fatal conditions are journaled before returning.

    """
    try:
        journal = Journal(config.log_file)
    except OSError:
        _LOGGER.exception("Cannot open journal %s", config.log_file)
        return RunOutcome.STORAGE_ERROR

    owns_session = session is None
    if session is None:
        session = api.create_session_client(config.http_timeout)

    notifier = EmailNotifier(
        config.smtp_login,
        config.smtp_pass,
        recipient=config.alert_email,
        smtp_server=config.smtp_server,
        smtp_port=config.smtp_port,
    )
    try:
        return await _async_run_cycle(config, session, journal, notifier)
    except OSError as err:
        _LOGGER.exception("Storage error during run")
        journal.warning("Storage error: %s", err)
        return RunOutcome.STORAGE_ERROR
    finally:
        journal.close()
        if owns_session:
            await session.aclose()


async def _async_run_cycle(
    config: BridgeConfig,
    session: httpx.AsyncClient,
    journal: Journal,
    notifier: EmailNotifier,
) -> RunOutcome:
    journal.write("-- starting --")
    store = CredentialStore(config.settings_file)
    snapshot = store.load()

    tokens = TokenLifecycleManager(
        session, store, notifier, journal, config.api_key, config.scope
    )
    poller = SensorPoller(session, store)
    try:
        snapshot = await tokens.async_ensure_authorized(snapshot)
        snapshot, thermostats = await poller.async_fetch_readings(snapshot)
    except AuthorizationPending as err:
        _LOGGER.warning("%s", err)
        journal.warning("Authorization pending, waiting for PIN %s", err.pin)
        return RunOutcome.AUTHORIZATION_PENDING
    except TokenExchangeFailed as err:
        _LOGGER.error("%s", err)
        journal.warning("ERROR: %s", err)
        return RunOutcome.TOKEN_EXCHANGE_FAILED
    except UpstreamError as err:
        _LOGGER.error("Upstream error (%s): %s", err.kind, err)
        journal.warning("%s", err)
        return RunOutcome.UPSTREAM_ERROR

    for thermostat in thermostats:
        runtime = api.extract_runtime(thermostat)
        if not runtime.connected:
            journal.warning("Error: Thermostat NOT connected: %s", runtime.name)
            continue
        journal.write(
            "%s: Overall temp: %s℃, %s%%",
            runtime.name,
            runtime.temperature,
            runtime.humidity,
        )

    actuator = KasaCloudClient(session, config.tplink_user, config.tplink_pass)
    controller = HysteresisController(
        config.rules, store, actuator, notifier, journal
    )
    for reading in iter_sensor_readings(thermostats):
        journal.write(
            "  - %s/%s: %s℃%s",
            reading.group,
            reading.sensor,
            reading.temperature,
            " [*]" if reading.occupancy else "",
        )
        snapshot = await controller.async_process(snapshot, reading)

    journal.write("-- completed --")
    return RunOutcome.COMPLETED
