"""Configuration loading and validation.

Options come from the process environment, optionally seeded from a
``.env`` file, and are validated once at start into an immutable
BridgeConfig.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import voluptuous as vol
from dotenv import dotenv_values

from .const import (
    CONF_ALERT_EMAIL,
    CONF_API_KEY,
    CONF_HTTP_TIMEOUT,
    CONF_LOG_FILE,
    CONF_LOG_LEVEL,
    CONF_SCOPE,
    CONF_SENSOR_RULES,
    CONF_SETTINGS_FILE,
    CONF_SMTP_LOGIN,
    CONF_SMTP_PASS,
    CONF_SMTP_PORT,
    CONF_SMTP_SERVER,
    CONF_TPLINK_PASS,
    CONF_TPLINK_USER,
    DEAD_BAND_EXCLUSIVE,
    DEAD_BAND_INCLUSIVE,
    DEFAULT_LOG_FILE,
    DEFAULT_SCOPE,
    DEFAULT_SENSOR_RULES,
    DEFAULT_SETTINGS_FILE,
    DEFAULT_SMTP_PORT,
    DEFAULT_SMTP_SERVER,
    DEFAULT_TIMEOUT,
)
from .exceptions import ConfigurationError
from .models import SensorRule

_LOGGER = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _thresholds_ordered(rule: dict[str, Any]) -> dict[str, Any]:
    if rule["on_threshold"] >= rule["off_threshold"]:
        error_msg = (
            f"on_threshold must be below off_threshold for sensor {rule['sensor']}"
        )
        raise vol.Invalid(error_msg)
    return rule


def _json_list(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError as err:
            error_msg = f"invalid JSON: {err}"
            raise vol.Invalid(error_msg) from err
    return value


RULE_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Required("sensor"): vol.All(str, vol.Length(min=1)),
            vol.Required("device"): vol.All(str, vol.Length(min=1)),
            vol.Required("on_threshold"): vol.Coerce(float),
            vol.Required("off_threshold"): vol.Coerce(float),
            vol.Optional("dead_band_policy", default=DEAD_BAND_INCLUSIVE): vol.In(
                [DEAD_BAND_INCLUSIVE, DEAD_BAND_EXCLUSIVE]
            ),
            vol.Optional("alert_below", default=None): vol.Any(None, vol.Coerce(float)),
            vol.Optional("alert_above", default=None): vol.Any(None, vol.Coerce(float)),
        }
    ),
    _thresholds_ordered,
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_API_KEY): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_SCOPE, default=DEFAULT_SCOPE): str,
        vol.Optional(CONF_SETTINGS_FILE, default=DEFAULT_SETTINGS_FILE): str,
        vol.Optional(CONF_LOG_FILE, default=DEFAULT_LOG_FILE): str,
        vol.Optional(CONF_SMTP_LOGIN, default=None): vol.Any(None, str),
        vol.Optional(CONF_SMTP_PASS, default=None): vol.Any(None, str),
        vol.Optional(CONF_SMTP_SERVER, default=DEFAULT_SMTP_SERVER): str,
        vol.Optional(CONF_SMTP_PORT, default=DEFAULT_SMTP_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_ALERT_EMAIL, default=None): vol.Any(None, str),
        vol.Required(CONF_TPLINK_USER): vol.All(str, vol.Length(min=1)),
        vol.Required(CONF_TPLINK_PASS): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_SENSOR_RULES, default=DEFAULT_SENSOR_RULES): vol.All(
            _json_list, [RULE_SCHEMA], vol.Length(min=1)
        ),
        vol.Optional(CONF_HTTP_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_LOG_LEVEL, default="INFO"): vol.All(
            vol.Upper, vol.In(LOG_LEVELS)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class BridgeConfig:
    """Immutable options for one run."""

    api_key: str
    scope: str
    settings_file: Path
    log_file: Path
    tplink_user: str
    tplink_pass: str
    rules: tuple[SensorRule, ...]
    smtp_login: str | None = None
    smtp_pass: str | None = None
    smtp_server: str = DEFAULT_SMTP_SERVER
    smtp_port: int = DEFAULT_SMTP_PORT
    alert_email: str | None = None
    http_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"


def parse_config(
    values: Mapping[str, Any], base_dir: str | os.PathLike[str] | None = None
) -> BridgeConfig:
    """Validate raw option values into a BridgeConfig.

    Empty strings count as unset. Relative file paths are resolved
    against ``base_dir`` (the working directory when None).

    Raises:
        ConfigurationError: If an option is missing or invalid.

    """
    cleaned = {key: value for key, value in values.items() if value not in (None, "")}
    try:
        data = CONFIG_SCHEMA(cleaned)
    except vol.Invalid as err:
        error_msg = f"Invalid configuration: {err}"
        raise ConfigurationError(error_msg) from err

    base = Path(base_dir) if base_dir is not None else Path.cwd()
    return BridgeConfig(
        api_key=data[CONF_API_KEY],
        scope=data[CONF_SCOPE],
        settings_file=base / data[CONF_SETTINGS_FILE],
        log_file=base / data[CONF_LOG_FILE],
        tplink_user=data[CONF_TPLINK_USER],
        tplink_pass=data[CONF_TPLINK_PASS],
        rules=tuple(SensorRule(**rule) for rule in data[CONF_SENSOR_RULES]),
        smtp_login=data[CONF_SMTP_LOGIN],
        smtp_pass=data[CONF_SMTP_PASS],
        smtp_server=data[CONF_SMTP_SERVER],
        smtp_port=data[CONF_SMTP_PORT],
        alert_email=data[CONF_ALERT_EMAIL],
        http_timeout=data[CONF_HTTP_TIMEOUT],
        log_level=data[CONF_LOG_LEVEL],
    )


def load_config(env_file: str | os.PathLike[str] | None = None) -> BridgeConfig:
    """Load configuration from an optional .env file and the environment.

    Environment variables take precedence over the file.

    Raises:
        ConfigurationError: If the file is missing or an option is invalid.

    """
    values: dict[str, Any] = {}
    base_dir = None
    if env_file is not None:
        path = Path(env_file)
        if not path.is_file():
            error_msg = f"Missing {path}, please create it"
            raise ConfigurationError(error_msg)
        values.update(dotenv_values(path))
        base_dir = path.resolve().parent
        _LOGGER.debug("Loaded options from %s", path)

    for key in map(str, CONFIG_SCHEMA.schema):
        if key in os.environ:
            values[key] = os.environ[key]
    return parse_config(values, base_dir)
