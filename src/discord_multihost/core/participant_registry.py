"""
Participant registry with advisory locking.

A host may place a short, time-bounded claim on a participant to tell other
hosts "I am handling this user". The claim is cooperative: moderation calls
do not check it. Expiry is evaluated against the clock whenever the lock is
read, so nothing has to sweep stale locks.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from discord_multihost.infrastructure import setup_logging

from .models import OccupantSnapshot, Participant, utcnow

logger = setup_logging(
    component_name="participant_registry",
    log_file="logs/multihost.log",
)


class ParticipantRegistry:
    """Ordered map of the participants currently in a session's channel."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._participants: Dict[int, Participant] = {}

    def now(self) -> datetime:
        return self._clock()

    def load(self, snapshots: Iterable[OccupantSnapshot]) -> List[Participant]:
        """Replace the registry contents with the channel's initial occupants."""
        self._participants = {}
        for snapshot in snapshots:
            self._participants[snapshot.user_id] = Participant.from_snapshot(snapshot)
        return list(self._participants.values())

    def add(self, snapshot: OccupantSnapshot) -> Participant:
        """
        Register a user who joined the channel.

        A user already present keeps their lock and only has the voice
        flags refreshed.
        """
        existing = self._participants.get(snapshot.user_id)
        if existing is not None:
            self.apply_voice_state(snapshot)
            return existing

        participant = Participant.from_snapshot(snapshot)
        self._participants[participant.user_id] = participant
        return participant

    def remove(self, user_id: int) -> Optional[Participant]:
        return self._participants.pop(user_id, None)

    def get(self, user_id: int) -> Optional[Participant]:
        return self._participants.get(user_id)

    def apply_voice_state(self, snapshot: OccupantSnapshot) -> Optional[Participant]:
        """Copy the four voice flags from a platform snapshot."""
        participant = self._participants.get(snapshot.user_id)
        if participant is None:
            return None

        participant.is_server_muted = snapshot.is_server_muted
        participant.is_server_deafened = snapshot.is_server_deafened
        participant.is_self_muted = snapshot.is_self_muted
        participant.is_self_deafened = snapshot.is_self_deafened
        return participant

    def try_lock(self, user_id: int, host_id: int, duration: timedelta) -> bool:
        """
        Claim a participant for ``duration``.

        Succeeds when the participant is unlocked, the previous lock has
        expired, or the caller already holds it (the expiry is refreshed).
        Fails without changing anything when another host holds an
        unexpired lock or the participant is unknown.
        """
        participant = self._participants.get(user_id)
        if participant is None:
            return False

        now = self._clock()
        if participant.is_locked(now) and participant.locked_by_host_id != host_id:
            logger.debug(
                f"Lock on {user_id} refused for host {host_id}: "
                f"held by {participant.locked_by_host_id}"
            )
            return False

        participant.locked_by_host_id = host_id
        participant.lock_expiry = now + duration
        return True

    def unlock(self, user_id: int, host_id: int) -> bool:
        """Release a lock held by ``host_id``. Returns False if nothing changed."""
        participant = self._participants.get(user_id)
        if participant is None or participant.locked_by_host_id != host_id:
            return False

        participant.locked_by_host_id = None
        participant.lock_expiry = None
        return True

    def is_locked(self, user_id: int) -> bool:
        participant = self._participants.get(user_id)
        return participant is not None and participant.is_locked(self._clock())

    def locked_by(self, user_id: int) -> Optional[int]:
        """Host currently holding an unexpired lock on the participant."""
        participant = self._participants.get(user_id)
        if participant is None or not participant.is_locked(self._clock()):
            return None
        return participant.locked_by_host_id

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def __iter__(self) -> Iterator[Participant]:
        return iter(list(self._participants.values()))
