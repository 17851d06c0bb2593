"""Exception hierarchy for masterq.

Every error raised by the library derives from :class:`MasterQueryError`, so
callers can catch the whole family at once or pick the narrow case they are
able to recover from.
"""

from __future__ import annotations

from typing import Any


class MasterQueryError(Exception):
    """Base exception for all masterq errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize masterq error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class NetworkError(MasterQueryError):
    """Network-related errors."""


class TransportError(NetworkError):
    """The UDP transport rejected a write or is not available."""


class QueryTimeoutError(NetworkError):
    """No reply arrived within the retry budget."""


class ProtocolError(MasterQueryError):
    """A reply does not match the expected wire layout."""


class ValidationError(MasterQueryError):
    """Data validation errors."""


class InvalidArgumentError(ValidationError):
    """A request could not be built from the given arguments."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""
