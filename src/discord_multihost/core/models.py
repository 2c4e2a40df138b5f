"""
Data models for MultiHost event sessions.

Plain dataclasses describing hosts, participants, audit entries and the
session policy, plus the enums shared across the coordinator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from discord_multihost.infrastructure.exceptions import ErrorKind, error_for_kind


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class EventStatus(Enum):
    """Lifecycle status of an event session."""

    STARTING = "starting"
    LIVE = "live"
    ENDING = "ending"


class HostRole(Enum):
    """Role held by a host within one session."""

    OWNER = "owner"
    CO_HOST = "co_host"
    MODERATOR = "moderator"


class ModerationType(Enum):
    """Moderation actions a host can attempt on a participant."""

    MUTE = "mute"
    UNMUTE = "unmute"
    DEAF = "deaf"
    UNDEAF = "undeaf"
    DISCONNECT = "disconnect"
    MOVE = "move"


@dataclass
class Host:
    """An operator of a session."""

    user_id: int
    username: str
    role: HostRole
    is_online: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "role": self.role.value,
            "is_online": self.is_online,
        }


@dataclass(frozen=True)
class OccupantSnapshot:
    """Voice state of one channel occupant as reported by the platform."""

    user_id: int
    username: str
    is_server_muted: bool = False
    is_server_deafened: bool = False
    is_self_muted: bool = False
    is_self_deafened: bool = False


@dataclass
class Participant:
    """A moderated occupant of the session's voice channel."""

    user_id: int
    username: str
    is_server_muted: bool = False
    is_server_deafened: bool = False
    is_self_muted: bool = False
    is_self_deafened: bool = False
    locked_by_host_id: Optional[int] = None
    lock_expiry: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, snapshot: OccupantSnapshot) -> "Participant":
        return cls(
            user_id=snapshot.user_id,
            username=snapshot.username,
            is_server_muted=snapshot.is_server_muted,
            is_server_deafened=snapshot.is_server_deafened,
            is_self_muted=snapshot.is_self_muted,
            is_self_deafened=snapshot.is_self_deafened,
        )

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """True while a host holds an unexpired advisory lock."""
        if now is None:
            now = utcnow()
        return (
            self.locked_by_host_id is not None
            and self.lock_expiry is not None
            and self.lock_expiry > now
        )

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        locked = self.is_locked(now)
        return {
            "user_id": self.user_id,
            "username": self.username,
            "is_server_muted": self.is_server_muted,
            "is_server_deafened": self.is_server_deafened,
            "is_self_muted": self.is_self_muted,
            "is_self_deafened": self.is_self_deafened,
            "is_locked": locked,
            "locked_by_host_id": self.locked_by_host_id if locked else None,
            "lock_expiry": _isoformat(self.lock_expiry) if locked else None,
        }


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of one attempted moderation action."""

    timestamp: datetime
    host_id: int
    host_username: str
    action: ModerationType
    target_user_id: int
    target_username: str
    success: bool
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _isoformat(self.timestamp),
            "host_id": self.host_id,
            "host_username": self.host_username,
            "action": self.action.value,
            "target_user_id": self.target_user_id,
            "target_username": self.target_username,
            "success": self.success,
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "detail": self.detail,
        }


@dataclass
class EventPolicy:
    """Moderation policy chosen when the session is created."""

    auto_mute_on_join: bool = False
    auto_deafen_on_join: bool = False
    participant_lock_duration_seconds: int = 10

    @property
    def lock_duration(self) -> timedelta:
        return timedelta(seconds=self.participant_lock_duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_mute_on_join": self.auto_mute_on_join,
            "auto_deafen_on_join": self.auto_deafen_on_join,
            "participant_lock_duration_seconds": self.participant_lock_duration_seconds,
        }


@dataclass
class OperationResult:
    """
    Outcome of a coordinator operation that does not raise.

    Truthiness follows ``success`` so callers can write ``if await
    manager.start_session(...)``.
    """

    success: bool
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    detail: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, message: Optional[str] = None, **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(
        cls, error: ErrorKind, message: str, detail: Optional[str] = None
    ) -> "OperationResult":
        return cls(success=False, error=error, message=message, detail=detail)

    def raise_for_error(self) -> None:
        """Raise the exception matching ``error`` when the operation failed."""
        if self.success:
            return
        raise error_for_kind(self.error, self.message or "", detail=self.detail)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.error is not None:
            result["error"] = self.error.value
        if self.detail is not None:
            result["detail"] = self.detail
        result.update(self.data)
        return result
