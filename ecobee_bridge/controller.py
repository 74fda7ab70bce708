"""Hysteresis control of smart plugs from sensor readings."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .const import DEAD_BAND_EXCLUSIVE, POWER_OFF, POWER_ON
from .models import Action, CredentialSnapshot, SensorReading, SensorRule

if TYPE_CHECKING:
    from .actuator import KasaCloudClient
    from .journal import Journal
    from .notify import EmailNotifier
    from .store import CredentialStore

_LOGGER = logging.getLogger(__name__)


def decide(
    rule: SensorRule, temperature: float | None, recorded_state: str | None
) -> Action:
    """Map a reading and the recorded device state to an action.

    No command is issued inside the dead band, or when the recorded state
    already matches the side of the band the reading is on.
    """
    if temperature is None:
        return Action.NONE

    if rule.dead_band_policy == DEAD_BAND_EXCLUSIVE:
        above = temperature > rule.off_threshold
        below = temperature < rule.on_threshold
    else:
        above = temperature >= rule.off_threshold
        below = temperature <= rule.on_threshold

    if above and recorded_state != POWER_OFF:
        return Action.POWER_OFF
    if below and recorded_state != POWER_ON:
        return Action.POWER_ON
    return Action.NONE


def check_alert(rule: SensorRule, temperature: float | None) -> str | None:
    """Return an alert description if a hard-safety threshold is crossed."""
    if temperature is None:
        return None
    if rule.alert_below is not None and temperature < rule.alert_below:
        return f"below {rule.alert_below}"
    if rule.alert_above is not None and temperature > rule.alert_above:
        return f"above {rule.alert_above}"
    return None


class HysteresisController:
    """Drive one plug per monitored sensor."""

    def __init__(
        self,
        rules: Iterable[SensorRule],
        store: CredentialStore,
        actuator: KasaCloudClient,
        notifier: EmailNotifier,
        journal: Journal,
    ) -> None:
        self.rules = {rule.sensor: rule for rule in rules}
        self.store = store
        self.actuator = actuator
        self.notifier = notifier
        self.journal = journal

    def decide(self, reading: SensorReading, snapshot: CredentialSnapshot) -> Action:
        """Decide for a reading against its rule; unmonitored sensors never act."""
        rule = self.rules.get(reading.sensor)
        if rule is None:
            return Action.NONE
        return decide(rule, reading.temperature, snapshot.device_state.get(rule.device))

    async def async_apply(
        self,
        snapshot: CredentialSnapshot,
        rule: SensorRule,
        action: Action,
        temperature: float | None = None,
    ) -> tuple[CredentialSnapshot, bool]:
        """Execute an action and record the new state only once confirmed."""
        if action is Action.NONE:
            return snapshot, True

        if action is Action.POWER_ON:
            success = await self.actuator.async_power_on(rule.device)
            state = POWER_ON
        else:
            success = await self.actuator.async_power_off(rule.device)
            state = POWER_OFF

        if not success:
            _LOGGER.warning("Failed turning %s %s", rule.device, state)
            self.journal.warning(
                "[deviceAction] %s *FAILED* turning %s (temp=%s)",
                rule.device,
                state.upper(),
                temperature,
            )
            return snapshot, False

        snapshot = snapshot.with_device_state(rule.device, state)
        self.store.save(snapshot)
        self.journal.write(
            "[deviceAction] %s turning %s (temp=%s)",
            rule.device,
            state.upper(),
            temperature,
        )
        return snapshot, True

    async def async_process(
        self, snapshot: CredentialSnapshot, reading: SensorReading
    ) -> CredentialSnapshot:
        """Decide, actuate and alert for one reading."""
        rule = self.rules.get(reading.sensor)
        if rule is None:
            return snapshot

        action = self.decide(reading, snapshot)
        _LOGGER.debug(
            "%s at %s with %s recorded %s: %s",
            reading.sensor,
            reading.temperature,
            rule.device,
            snapshot.device_state.get(rule.device),
            action.value,
        )
        snapshot, success = await self.async_apply(
            snapshot, rule, action, reading.temperature
        )
        if not success:
            await self.notifier.async_send(
                f"!{rule.device} failed turning {action.value}",
                f"{rule.device} did not confirm turning {action.value} "
                f"({reading.sensor} temperature {reading.temperature} degrees).",
            )

        breach = check_alert(rule, reading.temperature)
        if breach is not None:
            sent = await self.notifier.async_send(
                f"!{reading.sensor} Temperature {reading.temperature} degrees",
                f"{reading.sensor} temperature {reading.temperature} degrees: "
                "action required",
            )
            self.journal.warning(
                "%s temperature %s %s, alert %s",
                reading.sensor,
                reading.temperature,
                breach,
                "sent" if sent else "not sent",
            )

        return snapshot
