"""Domain errors raised by the bridge stages."""

from .const import UPSTREAM_OTHER


class BridgeError(Exception):
    """Base exception for conditions that halt a run."""


class ConfigurationError(BridgeError):
    """Exception raised when configuration is missing or invalid."""


class AuthorizationPending(BridgeError):
    """Exception raised while the PIN grant waits for the user."""

    def __init__(self, pin: str) -> None:
        super().__init__(f"Authorization pending, enter PIN {pin} in My Apps")
        self.pin = pin


class TokenExchangeFailed(BridgeError):
    """Exception raised when the token endpoint rejects an exchange."""

    def __init__(self, reason: str, description: str | None = None) -> None:
        message = f"Token exchange failed: {reason}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.reason = reason
        self.description = description


class UpstreamError(BridgeError):
    """Exception raised when the sensor provider cannot be queried."""

    def __init__(
        self,
        kind: str = UPSTREAM_OTHER,
        code: int | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(message or f"Upstream error: {kind}")
        self.kind = kind
        self.code = code
