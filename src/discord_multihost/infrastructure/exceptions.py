"""
Custom exceptions for the Discord MultiHost system.

This module defines the error taxonomy used by the session coordinator and
the exception classes that outer layers (control API, runner scripts) raise
when a coordinator result has to be escalated.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Categories of failure reported by the session coordinator."""

    SESSION_NOT_FOUND = "session_not_found"
    PARTICIPANT_NOT_FOUND = "participant_not_found"
    UNAUTHORIZED = "unauthorized"
    ADAPTER_FAILURE = "adapter_failure"
    JOIN_TIMEOUT = "join_timeout"
    INVALID_REQUEST = "invalid_request"


class MultiHostError(Exception):
    """Base exception for all MultiHost related errors."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str = "", detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ConfigurationError(MultiHostError):
    """Raised when there are configuration-related errors."""

    pass


class ValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    pass


class TokenError(ConfigurationError):
    """Raised when the bot token configuration is invalid."""

    pass


class PlatformError(MultiHostError):
    """Raised when the voice platform client cannot be started or used."""

    pass


class SessionNotFoundError(MultiHostError):
    """Raised when a session id does not match any live session."""

    kind = ErrorKind.SESSION_NOT_FOUND


class ParticipantNotFoundError(MultiHostError):
    """Raised when a user is not present in the monitored voice channel."""

    kind = ErrorKind.PARTICIPANT_NOT_FOUND


class UnauthorizedError(MultiHostError):
    """Raised when a host's role does not permit the requested action."""

    kind = ErrorKind.UNAUTHORIZED


class AdapterFailureError(PlatformError):
    """Raised when a voice platform call reported failure."""

    kind = ErrorKind.ADAPTER_FAILURE


class JoinTimeoutError(PlatformError):
    """Raised when starting a session exceeded the configured wait bound."""

    kind = ErrorKind.JOIN_TIMEOUT


class InvalidRequestError(MultiHostError):
    """Raised for malformed identifiers and rejected roster changes."""

    kind = ErrorKind.INVALID_REQUEST


_ERRORS_BY_KIND = {
    ErrorKind.SESSION_NOT_FOUND: SessionNotFoundError,
    ErrorKind.PARTICIPANT_NOT_FOUND: ParticipantNotFoundError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.ADAPTER_FAILURE: AdapterFailureError,
    ErrorKind.JOIN_TIMEOUT: JoinTimeoutError,
    ErrorKind.INVALID_REQUEST: InvalidRequestError,
}


def error_for_kind(
    kind: ErrorKind, message: str = "", detail: Optional[str] = None
) -> MultiHostError:
    """
    Build the exception matching an error kind.

    Args:
        kind: Error category reported by the coordinator
        message: Human readable message
        detail: Optional platform-supplied reason

    Returns:
        MultiHostError: Exception instance (not raised)
    """
    return _ERRORS_BY_KIND[kind](message, detail=detail)
