"""
Common constants for the Discord MultiHost system.

Audit messages and defaults live here so the coordinator, the adapter and
the control API agree on them.
"""

from typing import Final

# Audit entry messages
MSG_PARTICIPANT_NOT_FOUND: Final[str] = "Participant not in voice channel"
MSG_UNAUTHORIZED: Final[str] = "Unauthorized"
MSG_PLATFORM_CALL_FAILED: Final[str] = "platform call failed"

# Username recorded when the target is not in the channel
UNKNOWN_USERNAME: Final[str] = "Unknown"

# Default values
DEFAULT_LOCK_SECONDS: Final[int] = 10
DEFAULT_JOIN_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_NOTIFICATION_QUEUE_SIZE: Final[int] = 100
DEFAULT_API_HOST: Final[str] = "127.0.0.1"
DEFAULT_API_PORT: Final[int] = 8000
