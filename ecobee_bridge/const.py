"""Constants for the ecobee bridge.

This module contains all the constants used throughout the bridge,
including API endpoints, embedded status codes and configuration keys.
"""

BASE_URL = "https://api.ecobee.com"
AUTHORIZE_URL = f"{BASE_URL}/authorize"
TOKEN_URL = f"{BASE_URL}/token"
THERMOSTAT_URL = f"{BASE_URL}/1/thermostat"

KASA_CLOUD_URL = "https://wap.tplinkcloud.com"
KASA_APP_TYPE = "Kasa_Android"

DEFAULT_SCOPE = "smartRead"
DEFAULT_TIMEOUT = 10.0
DEFAULT_SETTINGS_FILE = "settings.json"
DEFAULT_LOG_FILE = "ecobee.log"
DEFAULT_SMTP_SERVER = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587

# Embedded status.code values of the thermostat API
STATUS_OK = 0
STATUS_TOKEN_EXPIRED = 14

# Token endpoint error strings
ERROR_AUTHORIZATION_EXPIRED = "authorization_expired"

# TokenExchangeFailed reasons
REASON_AUTH_CODE_EXPIRED = "authCode_expired"
REASON_TOKEN_ERROR = "token_error"

# UpstreamError kinds
UPSTREAM_EXPIRED = "expired"
UPSTREAM_OTHER = "other"
UPSTREAM_TRANSIENT = "transient"

POWER_ON = "on"
POWER_OFF = "off"
POWER_STATES = (POWER_ON, POWER_OFF)

DEAD_BAND_INCLUSIVE = "inclusive"
DEAD_BAND_EXCLUSIVE = "exclusive"

# Snapshot file keys
KEY_AUTH_CODE = "authCode"
KEY_PIN = "ecobeePin"
KEY_ACCESS_TOKEN = "accessToken"
KEY_REFRESH_TOKEN = "refreshToken"
KEY_TOKEN_TYPE = "tokenType"
KEY_DEVICE_STATE = "deviceState"

# Configuration keys
CONF_API_KEY = "API_KEY"
CONF_SCOPE = "ECOBEE_SCOPE"
CONF_SETTINGS_FILE = "SETTINGS_FILE"
CONF_LOG_FILE = "LOG_FILE"
CONF_SMTP_LOGIN = "SMTP_LOGIN"
CONF_SMTP_PASS = "SMTP_PASS"
CONF_SMTP_SERVER = "SMTP_SERVER"
CONF_SMTP_PORT = "SMTP_PORT"
CONF_ALERT_EMAIL = "ALERT_EMAIL"
CONF_TPLINK_USER = "TPLINK_USER"
CONF_TPLINK_PASS = "TPLINK_PASS"
CONF_SENSOR_RULES = "SENSOR_RULES"
CONF_HTTP_TIMEOUT = "HTTP_TIMEOUT"
CONF_LOG_LEVEL = "LOG_LEVEL"

DEFAULT_SENSOR_RULES = [
    {
        "sensor": "Sunroom",
        "device": "SunroomHeater",
        "on_threshold": 11.0,
        "off_threshold": 12.0,
        "alert_below": 5.0,
    },
]
