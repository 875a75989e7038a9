"""Custom exception hierarchy for pyhiomehue."""

from __future__ import annotations


class HiomeHueError(Exception):
    """Base exception for all pyhiomehue errors."""


class HiomeHueConfigError(HiomeHueError):
    """Invalid or missing configuration."""


class PayloadError(HiomeHueError):
    """Bus message payload could not be parsed into a typed event."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class PersistenceError(HiomeHueError):
    """State file could not be read or written.

    In-memory state stays authoritative; callers log and carry on.
    """


class HueError(HiomeHueError):
    """Base for failures talking to a Hue bridge or the discovery service."""


class HueTransportError(HueError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class HueApiError(HueError):
    """Bridge answered with a Hue error object."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class HueUnauthorizedError(HueApiError):
    """Credential is unknown to the bridge (error type ``1``)."""


class HueLinkNotPressedError(HueApiError):
    """User creation refused because the link button was not pressed (type ``101``).

    Expected while pairing for the first time; the scan is retried.
    """


class PairingError(HiomeHueError):
    """Pairing could not settle on exactly one authenticated bridge."""

    def __init__(self, message: str, *, reason: str) -> None:
        self.reason = reason
        super().__init__(message)


class NoBridgeFoundError(PairingError):
    """No reachable bridge was discovered."""


class AmbiguousBridgeError(PairingError):
    """More than one bridge authenticated, so none is picked."""
