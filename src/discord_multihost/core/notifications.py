"""
Change-notification fan-out.

Observers subscribe to a hub and read notifications from their own bounded
queue, in whatever task or thread suits them. Publishing never blocks the
coordinator: when a subscriber falls behind, its oldest pending
notification is dropped.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional, Set

from discord_multihost.infrastructure import setup_logging

logger = setup_logging(
    component_name="notifications",
    log_file="logs/multihost.log",
)


class NotificationKind(Enum):
    SESSION_UPDATED = "session_updated"
    AUDIT_ENTRY_ADDED = "audit_entry_added"


@dataclass(frozen=True)
class Notification:
    """
    One published change.

    ``payload`` is an EventSession snapshot for SESSION_UPDATED and an
    AuditEntry for AUDIT_ENTRY_ADDED.
    """

    kind: NotificationKind
    session_id: str
    payload: Any

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "session_id": self.session_id,
            "payload": self.payload.to_dict(),
        }


class Subscription:
    """A subscriber's view of the notification stream."""

    def __init__(
        self,
        hub: "NotificationHub",
        session_id: Optional[str],
        kinds: FrozenSet[NotificationKind],
        maxsize: int,
    ):
        self._hub = hub
        self.session_id = session_id
        self.kinds = kinds
        self.dropped = 0
        self.closed = False
        # None marks the end of the stream
        self._queue: "asyncio.Queue[Optional[Notification]]" = asyncio.Queue(maxsize=maxsize)

    def matches(self, notification: Notification) -> bool:
        if notification.kind not in self.kinds:
            return False
        return self.session_id is None or self.session_id == notification.session_id

    def deliver(self, notification: Notification) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                f"Subscriber for session {self.session_id or '*'} is behind; "
                f"dropped {self.dropped} notification(s)"
            )
        self._queue.put_nowait(notification)

    async def get(self) -> Optional[Notification]:
        """Wait for the next notification; None once the subscription is closed."""
        item = await self._queue.get()
        if item is None:
            # Leave the marker for any other waiter
            self._queue.put_nowait(None)
        return item

    def get_nowait(self) -> Notification:
        """Raises asyncio.QueueEmpty when nothing is pending."""
        if self.closed:
            raise asyncio.QueueEmpty
        return self._queue.get_nowait()

    def pending(self) -> int:
        return 0 if self.closed else self._queue.qsize()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._hub.unsubscribe(self)
            while not self._queue.empty():
                self._queue.get_nowait()
            self._queue.put_nowait(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Notification:
        notification = await self.get()
        if notification is None:
            raise StopAsyncIteration
        return notification

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class NotificationHub:
    """Broadcasts session and audit notifications to subscribers."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: Set[Subscription] = set()

    def subscribe(
        self,
        session_id: Optional[str] = None,
        kinds: Optional[Iterable[NotificationKind]] = None,
    ) -> Subscription:
        """
        Start receiving notifications.

        Args:
            session_id: Only receive notifications for this session
                (None for all sessions)
            kinds: Notification kinds to receive (None for all)

        Returns:
            Subscription: Queue-backed stream; close it when done
        """
        subscription = Subscription(
            self,
            session_id,
            frozenset(kinds) if kinds is not None else frozenset(NotificationKind),
            self.queue_size,
        )
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    def publish(self, notification: Notification) -> None:
        for subscription in list(self._subscriptions):
            if subscription.matches(notification):
                subscription.deliver(notification)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
