"""Session lifecycle state machine."""

from typing import Dict, Set

from .models import EventStatus


class SessionStateMachine:
    """Valid status transitions for an event session.

    State flow with triggers:
    - STARTING (session created) -> LIVE (platform confirmed the voice join)
    - STARTING -> ENDING (owner abandons a session that never went live)
    - LIVE -> ENDING (owner ends the event)
    - ENDING is terminal; the session is removed from the live set right after
    """

    TRANSITIONS: Dict[EventStatus, Set[EventStatus]] = {
        EventStatus.STARTING: {EventStatus.LIVE, EventStatus.ENDING},
        EventStatus.LIVE: {EventStatus.ENDING},
        EventStatus.ENDING: set(),
    }

    TERMINAL_STATES: Set[EventStatus] = {EventStatus.ENDING}

    @classmethod
    def can_transition(cls, current: EventStatus, new: EventStatus) -> bool:
        """Check if a transition from ``current`` to ``new`` is valid."""
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: EventStatus) -> bool:
        return state in cls.TERMINAL_STATES
