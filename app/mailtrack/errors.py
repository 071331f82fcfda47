from __future__ import annotations


class MailtrackError(Exception):
    """Base class for errors raised by the messaging core."""


class ConfigurationError(MailtrackError):
    """Raised when a message or configuration section is incomplete or invalid."""


class TransportError(MailtrackError):
    """Raised by transport adapters when delivery could not be attempted."""

    def __init__(self, message: str, *, transport: str | None = None) -> None:
        super().__init__(message)
        self.transport = transport


class PersistenceError(MailtrackError):
    """Raised when a tracking record could not be written."""
