"""Exception types for the Face ID kiosk."""

from __future__ import annotations


class FaceIDError(RuntimeError):
    """Base class for errors raised by the kiosk."""


class ConfigError(FaceIDError):
    """Raised when kiosk configuration data cannot be loaded."""


class ParameterError(FaceIDError):
    """Raised when a task parameter is missing or has the wrong shape.

    The error has already been reported (logged and routed to the internal
    error state) by the time it is raised; the dispatcher only uses it to abort
    the remainder of the handler.
    """

    def __init__(self, key: str, expected: str, reason: str | None = None) -> None:
        self.key = key
        self.expected = expected
        self.reason = reason
        message = f"task parameter {key!r} is not a valid {expected}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProtocolError(FaceIDError, ValueError):
    """Raised when a rosbridge payload cannot be parsed."""


class BridgeError(FaceIDError):
    """Raised when the messaging bridge cannot satisfy a request."""


class TransportError(FaceIDError):
    """Raised by face API transports when a request cannot be delivered."""


class CameraError(FaceIDError):
    """Raised when a frame cannot be captured from the camera."""
