"""
Event session aggregate.

An EventSession owns its host roster, participant registry, audit log and
policy; nothing is shared between sessions.
"""

import copy
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from discord_multihost.infrastructure.exceptions import InvalidRequestError

from .access_control import HostRoster
from .audit_log import AuditLog
from .models import (
    EventPolicy,
    EventStatus,
    Host,
    ModerationType,
    Participant,
    utcnow,
)
from .participant_registry import ParticipantRegistry
from .state_machine import SessionStateMachine


class EventSession:
    """
    One moderated voice event in a guild channel.
    """

    def __init__(
        self,
        guild_id: int,
        guild_name: str,
        voice_channel_id: int,
        voice_channel_name: str,
        owner_id: int,
        owner_username: str,
        policy: Optional[EventPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_id = str(uuid.uuid4())
        self.guild_id = guild_id
        self.guild_name = guild_name
        self.voice_channel_id = voice_channel_id
        self.voice_channel_name = voice_channel_name
        self.status = EventStatus.STARTING
        self.policy = policy or EventPolicy()

        self.hosts = HostRoster(owner_id, owner_username)
        self.participants = ParticipantRegistry(clock=clock)
        self.audit_log = AuditLog(clock=clock)

        self._clock = clock
        self.created_at: datetime = clock()
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None

        # Handle of the platform voice connection while LIVE
        self.connection_id: Optional[str] = None

    def get_owner(self) -> Host:
        return self.hosts.owner

    def is_host_authorized(self, user_id: int, action: object) -> bool:
        return self.hosts.is_authorized(user_id, action)

    def can_manage_hosts(self, user_id: int) -> bool:
        return self.hosts.can_manage_hosts(user_id)

    def find_participant(self, user_id: int) -> Optional[Participant]:
        return self.participants.get(user_id)

    def try_lock_participant(self, participant_id: int, host_id: int) -> bool:
        return self.participants.try_lock(
            participant_id, host_id, self.policy.lock_duration
        )

    def unlock_participant(self, participant_id: int, host_id: int) -> bool:
        return self.participants.unlock(participant_id, host_id)

    def add_audit_entry(
        self,
        host_id: int,
        host_username: str,
        action: ModerationType,
        target_user_id: int,
        target_username: str,
        success: bool,
        **kwargs: Any,
    ):
        return self.audit_log.record(
            host_id,
            host_username,
            action,
            target_user_id,
            target_username,
            success,
            **kwargs,
        )

    def transition(self, new_status: EventStatus) -> None:
        """
        Move to a new lifecycle status and stamp the matching timestamp.

        Raises:
            InvalidRequestError: If the transition is not allowed
        """
        if not SessionStateMachine.can_transition(self.status, new_status):
            raise InvalidRequestError(
                f"Session {self.session_id} cannot go from "
                f"{self.status.value} to {new_status.value}"
            )

        self.status = new_status
        if new_status == EventStatus.LIVE:
            self.started_at = self._clock()
        elif new_status == EventStatus.ENDING:
            self.ended_at = self._clock()

    def snapshot(self) -> "EventSession":
        """Deep copy safe to hand to observers."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        now = self._clock()
        participants: List[Dict[str, Any]] = [
            p.to_dict(now) for p in self.participants
        ]
        return {
            "session_id": self.session_id,
            "guild_id": self.guild_id,
            "guild_name": self.guild_name,
            "voice_channel_id": self.voice_channel_id,
            "voice_channel_name": self.voice_channel_name,
            "status": self.status.value,
            "policy": self.policy.to_dict(),
            "hosts": [h.to_dict() for h in self.hosts],
            "participants": participants,
            "audit_log_size": len(self.audit_log),
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }
