"""
Append-only audit trail of moderation attempts.

Entries are recorded in call order and never mutated or removed; bounded
display (e.g. "last 100") is left to whoever renders the log.
"""

from datetime import datetime
from typing import Callable, Iterator, List, Optional, Tuple

from discord_multihost.infrastructure import setup_logging
from discord_multihost.infrastructure.exceptions import ErrorKind

from .models import AuditEntry, ModerationType, utcnow

logger = setup_logging(
    component_name="audit_log",
    log_file="logs/audit.log",
)


class AuditLog:
    """Chronological record of every moderation attempt in one session."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._entries: List[AuditEntry] = []

    def record(
        self,
        host_id: int,
        host_username: str,
        action: ModerationType,
        target_user_id: int,
        target_username: str,
        success: bool,
        error_message: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None,
        detail: Optional[str] = None,
    ) -> AuditEntry:
        """
        Append a new entry stamped with the current time.

        Returns:
            AuditEntry: The entry that was appended
        """
        entry = AuditEntry(
            timestamp=self._clock(),
            host_id=host_id,
            host_username=host_username,
            action=action,
            target_user_id=target_user_id,
            target_username=target_username,
            success=success,
            error_message=error_message,
            error_kind=error_kind,
            detail=detail,
        )
        self._entries.append(entry)

        status = "OK" if success else f"FAILED ({error_message})"
        logger.info(
            f"{host_username} ({host_id}) -> {action.value} -> "
            f"{target_username} ({target_user_id}): {status}"
        )
        return entry

    @property
    def entries(self) -> Tuple[AuditEntry, ...]:
        return tuple(self._entries)

    @property
    def latest(self) -> Optional[AuditEntry]:
        return self._entries[-1] if self._entries else None

    def for_target(self, user_id: int) -> List[AuditEntry]:
        return [e for e in self._entries if e.target_user_id == user_id]

    def for_host(self, host_id: int) -> List[AuditEntry]:
        return [e for e in self._entries if e.host_id == host_id]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(tuple(self._entries))
