"""
Session coordinator for multi-host voice events.

The EventSessionManager owns every live session, exposes the moderation API
used by hosts, checks authorization before delegating to the voice platform,
keeps the audit trail, and publishes change notifications. It also receives
voice-state events from the platform and applies them to the session bound
to the connection they came from.

Concurrency: each session has its own asyncio.Lock held for the whole of a
coordinator operation (including the platform call), and the session map has
a separate lock. Locks are always taken session first, map second.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from discord_multihost.infrastructure import setup_logging
from discord_multihost.infrastructure.exceptions import ErrorKind, InvalidRequestError

from .models import (
    AuditEntry,
    EventPolicy,
    EventStatus,
    HostRole,
    ModerationType,
    OccupantSnapshot,
    OperationResult,
    Participant,
    utcnow,
)
from .notifications import Notification, NotificationHub, NotificationKind
from .session import EventSession
from .types import (
    DEFAULT_JOIN_TIMEOUT_SECONDS,
    MSG_PARTICIPANT_NOT_FOUND,
    MSG_PLATFORM_CALL_FAILED,
    MSG_UNAUTHORIZED,
    UNKNOWN_USERNAME,
)

if TYPE_CHECKING:
    from discord_multihost.platform.adapter import VoicePlatformAdapter

logger = setup_logging(
    component_name="session_manager",
    log_file="logs/multihost.log",
)

PlatformCall = Callable[[EventSession], Awaitable[Any]]
SuccessHook = Callable[[EventSession, Participant], None]


class _LiveSession:
    """A session in the live set together with its operation lock."""

    def __init__(self, session: EventSession):
        self.session = session
        self.lock = asyncio.Lock()
        self.removed = False


class EventSessionManager:
    """
    Coordinates hosts, participants and the voice platform for every live
    session.
    """

    def __init__(
        self,
        adapter: "VoicePlatformAdapter",
        notifications: Optional[NotificationHub] = None,
        join_timeout_seconds: float = DEFAULT_JOIN_TIMEOUT_SECONDS,
        default_policy: Optional[EventPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            adapter: Voice platform used for joins and moderation primitives
            notifications: Hub receiving session/audit notifications
            join_timeout_seconds: Bound on waiting for the platform to be
                ready and the voice join to complete
            default_policy: Policy copied into sessions created without one
            clock: Time source for timestamps and lock expiry
        """
        self.adapter = adapter
        self.notifications = notifications or NotificationHub()
        self.join_timeout_seconds = join_timeout_seconds
        self.default_policy = default_policy or EventPolicy()
        self._clock = clock

        self._sessions: Dict[str, _LiveSession] = {}
        self._sessions_lock = asyncio.Lock()
        # Platform connection handle -> session id
        self._connections: Dict[str, str] = {}

        adapter.add_listener(self)

    @classmethod
    def from_config(cls, adapter: "VoicePlatformAdapter", config) -> "EventSessionManager":
        """Build a manager from a MultiHostConfig."""
        return cls(
            adapter,
            notifications=NotificationHub(config.notification_queue_size),
            join_timeout_seconds=config.join_timeout_seconds,
            default_policy=EventPolicy(
                auto_mute_on_join=config.auto_mute_on_join,
                auto_deafen_on_join=config.auto_deafen_on_join,
                participant_lock_duration_seconds=config.participant_lock_seconds,
            ),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get_live(self, session_id: str) -> Optional[_LiveSession]:
        async with self._sessions_lock:
            return self._sessions.get(session_id)

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[Optional[EventSession]]:
        """Hold the session's lock; yields None if the session is not live."""
        live = await self._get_live(session_id)
        if live is None:
            yield None
            return

        async with live.lock:
            yield None if live.removed else live.session

    async def _session_for_connection(self, connection_id: str) -> Optional[str]:
        async with self._sessions_lock:
            return self._connections.get(connection_id)

    async def _release_connection(self, session_id: str, connection_id: str) -> None:
        """Unbind a connection and leave it, unless another session holds it."""
        async with self._sessions_lock:
            if self._connections.get(connection_id) != session_id:
                logger.debug(
                    f"Session {session_id} does not hold connection {connection_id}; not leaving"
                )
                return
            del self._connections[connection_id]

        try:
            await self.adapter.leave_channel(connection_id)
        except Exception as e:
            logger.error(f"Error leaving voice for session {session_id}: {e}", exc_info=True)

    def _publish_session(self, session: EventSession) -> None:
        self.notifications.publish(
            Notification(
                NotificationKind.SESSION_UPDATED, session.session_id, session.snapshot()
            )
        )

    def _publish_audit(self, session: EventSession, entry: AuditEntry) -> None:
        self.notifications.publish(
            Notification(NotificationKind.AUDIT_ENTRY_ADDED, session.session_id, entry)
        )

    @staticmethod
    def _validate_ids(**ids: Any) -> None:
        for name, value in ids.items():
            if value is None or value == "" or (isinstance(value, int) and value <= 0):
                raise InvalidRequestError(f"{name} must be a non-empty identifier")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_session(
        self,
        guild_id: int,
        guild_name: str,
        voice_channel_id: int,
        voice_channel_name: str,
        owner_id: int,
        owner_username: str,
        policy: Optional[EventPolicy] = None,
    ) -> EventSession:
        """
        Create a session in STARTING status with the owner as its only host.

        Returns:
            EventSession: Snapshot of the new session

        Raises:
            InvalidRequestError: If an identifier is empty or the lock
                duration is not positive
        """
        self._validate_ids(
            guild_id=guild_id, voice_channel_id=voice_channel_id, owner_id=owner_id
        )

        # Each session owns its policy; never share the caller's instance
        policy = EventPolicy(**(policy or self.default_policy).to_dict())
        if policy.participant_lock_duration_seconds <= 0:
            raise InvalidRequestError("participant_lock_duration_seconds must be positive")

        session = EventSession(
            guild_id=guild_id,
            guild_name=guild_name,
            voice_channel_id=voice_channel_id,
            voice_channel_name=voice_channel_name,
            owner_id=owner_id,
            owner_username=owner_username,
            policy=policy,
            clock=self._clock,
        )

        async with self._sessions_lock:
            self._sessions[session.session_id] = _LiveSession(session)

        logger.info(
            f"Created session {session.session_id} for {guild_name}/{voice_channel_name} "
            f"(owner {owner_username})"
        )
        self._publish_session(session)
        return session.snapshot()

    async def _connect(self, session: EventSession):
        await self.adapter.wait_until_ready()
        return await self.adapter.join_channel(session.guild_id, session.voice_channel_id)

    async def _apply_join_policy(
        self, session: EventSession, participants: List[Participant]
    ) -> None:
        """Best-effort auto-mute/deafen of the initial occupants."""
        policy = session.policy
        for participant in participants:
            if policy.auto_mute_on_join and await self._policy_call(
                "auto-mute", participant, self.adapter.set_mute(session.guild_id, participant.user_id, True)
            ):
                participant.is_server_muted = True
            if policy.auto_deafen_on_join and await self._policy_call(
                "auto-deafen", participant, self.adapter.set_deafen(session.guild_id, participant.user_id, True)
            ):
                participant.is_server_deafened = True

    async def _policy_call(
        self, label: str, participant: Participant, call: Awaitable[Any]
    ) -> bool:
        try:
            result = await call
        except Exception as e:
            logger.warning(f"{label} of {participant.username} raised: {e}", exc_info=True)
            return False
        if not result:
            logger.warning(f"{label} of {participant.username} failed: {getattr(result, 'reason', None)}")
        return bool(result)

    async def start_session(self, session_id: str) -> OperationResult:
        """
        Join the session's voice channel and go LIVE.

        On failure the session stays STARTING with no participants. A join
        that does not finish within ``join_timeout_seconds`` is reported as
        JOIN_TIMEOUT rather than a platform failure.
        """
        async with self._locked(session_id) as session:
            if session is None:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )
            if session.status != EventStatus.STARTING:
                return OperationResult.fail(
                    ErrorKind.INVALID_REQUEST,
                    f"Session {session_id} is already {session.status.value}",
                )

            try:
                join = await asyncio.wait_for(
                    self._connect(session), timeout=self.join_timeout_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Timed out after {self.join_timeout_seconds}s joining "
                    f"{session.voice_channel_name} for session {session_id}"
                )
                return OperationResult.fail(
                    ErrorKind.JOIN_TIMEOUT,
                    f"Voice connection not ready after {self.join_timeout_seconds}s",
                )
            except Exception as e:
                logger.error(f"Error joining voice for session {session_id}: {e}", exc_info=True)
                return OperationResult.fail(
                    ErrorKind.ADAPTER_FAILURE, "Could not join voice channel", detail=str(e)
                )

            if not join.success:
                logger.warning(f"Voice join failed for session {session_id}: {join.reason}")
                return OperationResult.fail(
                    ErrorKind.ADAPTER_FAILURE, "Could not join voice channel", detail=join.reason
                )

            async with self._sessions_lock:
                holder = self._connections.setdefault(join.connection_id, session_id)
            if holder != session_id:
                # The connection stays with the session already holding it
                logger.warning(
                    f"Session {session_id} rejected: connection {join.connection_id} "
                    f"belongs to session {holder}"
                )
                return OperationResult.fail(
                    ErrorKind.INVALID_REQUEST,
                    f"Voice connection is already in use by session {holder}",
                )

            try:
                participants = session.participants.load(
                    self.adapter.list_occupants(session.guild_id, session.voice_channel_id)
                )
                await self._apply_join_policy(session, participants)
            except Exception as e:
                logger.error(
                    f"Error loading occupants for session {session_id}: {e}", exc_info=True
                )
                session.participants.load([])
                await self._release_connection(session_id, join.connection_id)
                return OperationResult.fail(
                    ErrorKind.ADAPTER_FAILURE, "Could not load channel occupants", detail=str(e)
                )

            session.connection_id = join.connection_id
            session.transition(EventStatus.LIVE)
            logger.info(
                f"Session {session_id} is live in {session.voice_channel_name} "
                f"with {len(participants)} participant(s)"
            )
            self._publish_session(session)
            return OperationResult.ok(
                "Session is live", participant_count=len(participants)
            )

    async def end_session(self, session_id: str) -> OperationResult:
        """
        End a session, leave its voice channel and drop it from the live set.

        Ending an unknown session changes nothing.
        """
        live = await self._get_live(session_id)
        if live is None:
            logger.debug(f"end_session: session {session_id} not found")
            return OperationResult.fail(
                ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
            )

        async with live.lock:
            if live.removed:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )

            session = live.session
            session.transition(EventStatus.ENDING)

            if session.connection_id is not None:
                await self._release_connection(session_id, session.connection_id)

            self._publish_session(session)

            async with self._sessions_lock:
                self._sessions.pop(session_id, None)
            live.removed = True

        logger.info(f"Session {session_id} ended")
        return OperationResult.ok("Session ended")

    async def end_all_sessions(self) -> None:
        async with self._sessions_lock:
            session_ids = list(self._sessions)
        for session_id in session_ids:
            await self.end_session(session_id)

    async def get_session(self, session_id: str) -> Optional[EventSession]:
        """Snapshot of a live session, or None."""
        async with self._locked(session_id) as session:
            return session.snapshot() if session is not None else None

    async def list_sessions(self) -> List[EventSession]:
        async with self._sessions_lock:
            session_ids = list(self._sessions)

        snapshots = []
        for session_id in session_ids:
            snapshot = await self.get_session(session_id)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    async def get_audit_log(self, session_id: str) -> Optional[List[AuditEntry]]:
        async with self._locked(session_id) as session:
            return list(session.audit_log.entries) if session is not None else None

    @property
    def active_connections(self) -> Dict[str, str]:
        """Platform connection handle -> session id."""
        return dict(self._connections)

    async def update_policy(
        self,
        session_id: str,
        requester_id: int,
        auto_mute_on_join: Optional[bool] = None,
        auto_deafen_on_join: Optional[bool] = None,
        participant_lock_duration_seconds: Optional[int] = None,
    ) -> OperationResult:
        """Change the policy; owner only, and only before the session starts."""
        async with self._locked(session_id) as session:
            if session is None:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )
            if session.get_owner().user_id != requester_id:
                return OperationResult.fail(
                    ErrorKind.UNAUTHORIZED, "Only the owner can change the policy"
                )
            if session.status != EventStatus.STARTING:
                return OperationResult.fail(
                    ErrorKind.INVALID_REQUEST, "Policy can only change before the session starts"
                )
            if participant_lock_duration_seconds is not None and participant_lock_duration_seconds <= 0:
                return OperationResult.fail(
                    ErrorKind.INVALID_REQUEST, "Lock duration must be positive"
                )

            if auto_mute_on_join is not None:
                session.policy.auto_mute_on_join = auto_mute_on_join
            if auto_deafen_on_join is not None:
                session.policy.auto_deafen_on_join = auto_deafen_on_join
            if participant_lock_duration_seconds is not None:
                session.policy.participant_lock_duration_seconds = participant_lock_duration_seconds

            self._publish_session(session)
            return OperationResult.ok("Policy updated", policy=session.policy.to_dict())

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    async def add_host(
        self,
        session_id: str,
        requester_id: int,
        user_id: int,
        username: str,
        role: HostRole,
    ) -> OperationResult:
        async with self._locked(session_id) as session:
            if session is None:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )
            if not session.can_manage_hosts(requester_id):
                return OperationResult.fail(
                    ErrorKind.UNAUTHORIZED, "Only the owner can manage hosts"
                )
            try:
                host = session.hosts.add(user_id, username, role)
            except InvalidRequestError as e:
                return OperationResult.fail(ErrorKind.INVALID_REQUEST, e.message)

            logger.info(f"Session {session_id}: added {role.value} {username} ({user_id})")
            self._publish_session(session)
            return OperationResult.ok("Host added", host=host.to_dict())

    async def remove_host(
        self, session_id: str, requester_id: int, user_id: int
    ) -> OperationResult:
        async with self._locked(session_id) as session:
            if session is None:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )
            if not session.can_manage_hosts(requester_id):
                return OperationResult.fail(
                    ErrorKind.UNAUTHORIZED, "Only the owner can manage hosts"
                )
            try:
                host = session.hosts.remove(user_id)
            except InvalidRequestError as e:
                return OperationResult.fail(ErrorKind.INVALID_REQUEST, e.message)

            logger.info(f"Session {session_id}: removed host {host.username} ({user_id})")
            self._publish_session(session)
            return OperationResult.ok("Host removed")

    async def set_host_online(
        self, session_id: str, user_id: int, online: bool
    ) -> OperationResult:
        async with self._locked(session_id) as session:
            if session is None:
                return OperationResult.fail(
                    ErrorKind.SESSION_NOT_FOUND, f"Session {session_id} not found"
                )
            host = session.hosts.get(user_id)
            if host is None:
                return OperationResult.fail(
                    ErrorKind.INVALID_REQUEST, f"User {user_id} is not a host"
                )
            if host.is_online != online:
                host.is_online = online
                self._publish_session(session)
            return OperationResult.ok()

    # ------------------------------------------------------------------
    # Advisory locks
    # ------------------------------------------------------------------

    async def try_lock_participant(
        self, session_id: str, participant_id: int, host_id: int
    ) -> bool:
        async with self._locked(session_id) as session:
            if session is None:
                return False
            if not session.try_lock_participant(participant_id, host_id):
                return False
            self._publish_session(session)
            return True

    async def unlock_participant(
        self, session_id: str, participant_id: int, host_id: int
    ) -> bool:
        async with self._locked(session_id) as session:
            if session is None:
                return False
            if not session.unlock_participant(participant_id, host_id):
                return False
            self._publish_session(session)
            return True

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def _moderate(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
        action: ModerationType,
        platform_call: PlatformCall,
        on_success: SuccessHook,
    ) -> Optional[AuditEntry]:
        """
        Shared moderation flow.

        The participant is looked up before authorization is checked, so a
        missing target is reported as PARTICIPANT_NOT_FOUND even for hosts
        who could not act on it. Every attempt on a live session appends
        exactly one audit entry.
        """
        async with self._locked(session_id) as session:
            if session is None:
                logger.warning(f"{action.value}: session {session_id} not found")
                return None

            participant = session.find_participant(participant_id)
            if participant is None:
                entry = session.add_audit_entry(
                    host_id,
                    host_username,
                    action,
                    participant_id,
                    UNKNOWN_USERNAME,
                    False,
                    error_message=MSG_PARTICIPANT_NOT_FOUND,
                    error_kind=ErrorKind.PARTICIPANT_NOT_FOUND,
                )
                self._publish_audit(session, entry)
                return entry

            if not session.is_host_authorized(host_id, action):
                entry = session.add_audit_entry(
                    host_id,
                    host_username,
                    action,
                    participant_id,
                    participant.username,
                    False,
                    error_message=MSG_UNAUTHORIZED,
                    error_kind=ErrorKind.UNAUTHORIZED,
                )
                self._publish_audit(session, entry)
                return entry

            try:
                result = await platform_call(session)
                success = bool(result)
                reason = getattr(result, "reason", None)
            except Exception as e:
                logger.error(
                    f"{action.value} on {participant.username} raised: {e}", exc_info=True
                )
                success, reason = False, str(e)

            entry = session.add_audit_entry(
                host_id,
                host_username,
                action,
                participant_id,
                participant.username,
                success,
                error_message=None if success else MSG_PLATFORM_CALL_FAILED,
                error_kind=None if success else ErrorKind.ADAPTER_FAILURE,
                detail=None if success else reason,
            )
            if success:
                on_success(session, participant)

            self._publish_audit(session, entry)
            self._publish_session(session)
            return entry

    async def moderate(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
        action: ModerationType,
        target_channel_id: Optional[int] = None,
    ) -> Optional[AuditEntry]:
        """
        Apply a moderation action to a participant.

        Returns:
            AuditEntry: The entry recorded for this attempt, or None if the
            session is not live

        Raises:
            InvalidRequestError: If a move has no target channel
        """
        if action in (ModerationType.MUTE, ModerationType.UNMUTE):
            mute = action == ModerationType.MUTE

            def call(session: EventSession):
                return self.adapter.set_mute(session.guild_id, participant_id, mute)

            def apply(session: EventSession, participant: Participant) -> None:
                participant.is_server_muted = mute

        elif action in (ModerationType.DEAF, ModerationType.UNDEAF):
            deafen = action == ModerationType.DEAF

            def call(session: EventSession):
                return self.adapter.set_deafen(session.guild_id, participant_id, deafen)

            def apply(session: EventSession, participant: Participant) -> None:
                participant.is_server_deafened = deafen

        elif action == ModerationType.DISCONNECT:
            def call(session: EventSession):
                return self.adapter.disconnect(session.guild_id, participant_id)

            def apply(session: EventSession, participant: Participant) -> None:
                session.participants.remove(participant.user_id)

        else:
            if target_channel_id is None:
                raise InvalidRequestError("A move needs a target channel")

            def call(session: EventSession):
                return self.adapter.move(session.guild_id, participant_id, target_channel_id)

            def apply(session: EventSession, participant: Participant) -> None:
                if target_channel_id != session.voice_channel_id:
                    session.participants.remove(participant.user_id)

        return await self._moderate(
            session_id, host_id, host_username, participant_id, action, call, apply
        )

    async def mute_participant(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
        mute: bool,
    ) -> bool:
        entry = await self.moderate(
            session_id,
            host_id,
            host_username,
            participant_id,
            ModerationType.MUTE if mute else ModerationType.UNMUTE,
        )
        return entry is not None and entry.success

    async def deafen_participant(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
        deafen: bool,
    ) -> bool:
        entry = await self.moderate(
            session_id,
            host_id,
            host_username,
            participant_id,
            ModerationType.DEAF if deafen else ModerationType.UNDEAF,
        )
        return entry is not None and entry.success

    async def disconnect_participant(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
    ) -> bool:
        entry = await self.moderate(
            session_id, host_id, host_username, participant_id, ModerationType.DISCONNECT
        )
        return entry is not None and entry.success

    async def move_participant(
        self,
        session_id: str,
        host_id: int,
        host_username: str,
        participant_id: int,
        target_channel_id: int,
    ) -> bool:
        """Move a participant to another voice channel (owner/co-host only)."""
        entry = await self.moderate(
            session_id,
            host_id,
            host_username,
            participant_id,
            ModerationType.MOVE,
            target_channel_id=target_channel_id,
        )
        return entry is not None and entry.success

    # ------------------------------------------------------------------
    # Platform events
    # ------------------------------------------------------------------

    async def on_user_joined(self, connection_id: str, snapshot: OccupantSnapshot) -> None:
        session_id = await self._session_for_connection(connection_id)
        if session_id is None:
            logger.debug(f"Join of {snapshot.user_id} on unbound connection {connection_id}")
            return

        async with self._locked(session_id) as session:
            if session is None or session.status != EventStatus.LIVE:
                return
            session.participants.add(snapshot)
            logger.debug(f"Session {session_id}: {snapshot.username} joined")
            self._publish_session(session)

    async def on_user_left(self, connection_id: str, user_id: int) -> None:
        session_id = await self._session_for_connection(connection_id)
        if session_id is None:
            return

        async with self._locked(session_id) as session:
            if session is None or session.status != EventStatus.LIVE:
                return
            if session.participants.remove(user_id) is not None:
                logger.debug(f"Session {session_id}: {user_id} left")
                self._publish_session(session)

    async def on_user_state_changed(
        self, connection_id: str, snapshot: OccupantSnapshot
    ) -> None:
        session_id = await self._session_for_connection(connection_id)
        if session_id is None:
            return

        async with self._locked(session_id) as session:
            if session is None or session.status != EventStatus.LIVE:
                return
            if session.participants.apply_voice_state(snapshot) is not None:
                self._publish_session(session)

    async def on_connection_lost(self, connection_id: str) -> None:
        """The platform dropped a connection; its session stops receiving events."""
        async with self._sessions_lock:
            session_id = self._connections.pop(connection_id, None)
        if session_id is None:
            return

        async with self._locked(session_id) as session:
            if session is None or session.connection_id != connection_id:
                return
            session.connection_id = None
            logger.warning(f"Session {session_id} lost voice connection {connection_id}")
            self._publish_session(session)
