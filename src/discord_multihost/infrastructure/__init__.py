"""
Infrastructure components for the Discord MultiHost system.

This package contains cross-cutting concerns:
- Logging configuration with environment-based levels
- The error taxonomy and exception hierarchy
"""

from .logging import setup_logging, get_logger
from .logging_manager import (
    LoggingManager,
    Environment,
    is_production,
    get_environment,
)
from .exceptions import (
    ErrorKind,
    MultiHostError,
    ConfigurationError,
    ValidationError,
    TokenError,
    PlatformError,
    SessionNotFoundError,
    ParticipantNotFoundError,
    UnauthorizedError,
    AdapterFailureError,
    JoinTimeoutError,
    InvalidRequestError,
    error_for_kind,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "LoggingManager",
    "Environment",
    "is_production",
    "get_environment",
    # Errors
    "ErrorKind",
    "MultiHostError",
    "ConfigurationError",
    "ValidationError",
    "TokenError",
    "PlatformError",
    "SessionNotFoundError",
    "ParticipantNotFoundError",
    "UnauthorizedError",
    "AdapterFailureError",
    "JoinTimeoutError",
    "InvalidRequestError",
    "error_for_kind",
]
