"""
Core components for the Discord MultiHost system.

This package contains the session coordination logic: the session
aggregate and its lifecycle, the participant registry with advisory locks,
host roles and authorization, the audit trail, notification fan-out, and
the coordinator that ties them together.
"""

from .models import (
    AuditEntry,
    EventPolicy,
    EventStatus,
    Host,
    HostRole,
    ModerationType,
    OccupantSnapshot,
    OperationResult,
    Participant,
)
from .access_control import HostRoster, can_manage_hosts, is_host_authorized
from .audit_log import AuditLog
from .participant_registry import ParticipantRegistry
from .session import EventSession
from .state_machine import SessionStateMachine
from .notifications import Notification, NotificationHub, NotificationKind, Subscription
from .session_manager import EventSessionManager

__all__ = [
    "AuditEntry",
    "EventPolicy",
    "EventStatus",
    "Host",
    "HostRole",
    "ModerationType",
    "OccupantSnapshot",
    "OperationResult",
    "Participant",
    "HostRoster",
    "can_manage_hosts",
    "is_host_authorized",
    "AuditLog",
    "ParticipantRegistry",
    "EventSession",
    "SessionStateMachine",
    "Notification",
    "NotificationHub",
    "NotificationKind",
    "Subscription",
    "EventSessionManager",
]
