"""
Discord MultiHost - Multi-host moderation for Discord voice events.

Several hosts with different roles run one voice event together: they
mute, deafen, disconnect and move participants, claim participants with
short advisory locks so they do not act on the same person at once, and
every attempt lands in a per-session audit log.

Architecture:
- Core: Sessions, participants, hosts, audit trail and the coordinator
- Platform: Voice platform adapter interface and its discord.py implementation
- API: FastAPI control surface and WebSocket notification stream
- Config: Environment-based configuration
- Infrastructure: Logging and exceptions
"""

__version__ = "1.0.0"

# Core components
from .core import (
    AuditEntry,
    EventPolicy,
    EventSession,
    EventSessionManager,
    EventStatus,
    Host,
    HostRole,
    ModerationType,
    NotificationHub,
    NotificationKind,
    OperationResult,
    Participant,
)

# Platform
from .platform import DiscordVoiceAdapter, VoicePlatformAdapter

# Configuration
from .config import MultiHostConfig, ConfigManager, config_manager

# Infrastructure
from .infrastructure.logging import setup_logging, get_logger
from .infrastructure.exceptions import (
    ErrorKind,
    MultiHostError,
    ConfigurationError,
    PlatformError,
    InvalidRequestError,
)

__all__ = [
    # Version info
    "__version__",
    # Core components
    "AuditEntry",
    "EventPolicy",
    "EventSession",
    "EventSessionManager",
    "EventStatus",
    "Host",
    "HostRole",
    "ModerationType",
    "NotificationHub",
    "NotificationKind",
    "OperationResult",
    "Participant",
    # Platform
    "DiscordVoiceAdapter",
    "VoicePlatformAdapter",
    # Configuration
    "MultiHostConfig",
    "ConfigManager",
    "config_manager",
    # Infrastructure
    "setup_logging",
    "get_logger",
    "ErrorKind",
    "MultiHostError",
    "ConfigurationError",
    "PlatformError",
    "InvalidRequestError",
]
