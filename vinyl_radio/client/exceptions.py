"""Client-specific Exceptions for Vinyl Radio."""

from __future__ import annotations


class RadioClientException(Exception):
    """Generic Vinyl Radio client exception."""


class TransportError(RadioClientException):
    """Exception raised to represent transport errors."""

    def __init__(self, message: str, error: Exception | None = None) -> None:
        """Initialize a transport error."""
        super().__init__(message)
        self.error = error


class CannotConnect(TransportError):
    """Exception raised when failed to connect the client."""

    def __init__(self, error: Exception) -> None:
        """Initialize a cannot connect error."""
        super().__init__(f"{error}", error)


class InvalidState(RadioClientException):
    """Exception raised when data gets in invalid state."""


class InvalidMessage(RadioClientException):
    """Exception raised when an invalid message is received."""


class InvalidServerVersion(RadioClientException):
    """Exception raised when connected to server with incompatible version."""
