"""
Voice platform adapter interface.

The coordinator only talks to the voice platform through this interface:
joining/leaving channels, per-user moderation primitives, occupant listing
and voice-state events. Implementations deal with gateways, tokens and
native codec libraries.

Each successful join returns a connection handle; every event the adapter
emits carries the handle of the connection it was observed on, so the
coordinator can route it to the right session.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Protocol

from discord_multihost.core.models import OccupantSnapshot


@dataclass(frozen=True)
class AdapterResult:
    """Outcome of a platform primitive."""

    success: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls) -> "AdapterResult":
        return cls(True)

    @classmethod
    def fail(cls, reason: str) -> "AdapterResult":
        return cls(False, reason)


@dataclass(frozen=True)
class JoinResult(AdapterResult):
    """Outcome of joining a voice channel."""

    connection_id: Optional[str] = None

    @classmethod
    def joined(cls, connection_id: str) -> "JoinResult":
        return cls(True, None, connection_id)

    @classmethod
    def fail(cls, reason: str) -> "JoinResult":
        return cls(False, reason, None)


@dataclass(frozen=True)
class GuildInfo:
    guild_id: int
    name: str


@dataclass(frozen=True)
class ChannelInfo:
    channel_id: int
    name: str
    occupant_count: int = 0


class VoiceEventListener(Protocol):
    """Receiver of platform voice-state events."""

    async def on_user_joined(self, connection_id: str, snapshot: OccupantSnapshot) -> None:
        ...

    async def on_user_left(self, connection_id: str, user_id: int) -> None:
        ...

    async def on_user_state_changed(
        self, connection_id: str, snapshot: OccupantSnapshot
    ) -> None:
        ...

    async def on_connection_lost(self, connection_id: str) -> None:
        ...


class VoicePlatformAdapter(ABC):
    """Abstract voice platform used by the session coordinator."""

    def __init__(self):
        self._listeners: List[VoiceEventListener] = []

    def add_listener(self, listener: VoiceEventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: VoiceEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit_user_joined(self, connection_id: str, snapshot: OccupantSnapshot) -> None:
        for listener in list(self._listeners):
            await listener.on_user_joined(connection_id, snapshot)

    async def emit_user_left(self, connection_id: str, user_id: int) -> None:
        for listener in list(self._listeners):
            await listener.on_user_left(connection_id, user_id)

    async def emit_user_state_changed(
        self, connection_id: str, snapshot: OccupantSnapshot
    ) -> None:
        for listener in list(self._listeners):
            await listener.on_user_state_changed(connection_id, snapshot)

    async def emit_connection_lost(self, connection_id: str) -> None:
        for listener in list(self._listeners):
            await listener.on_connection_lost(connection_id)

    @abstractmethod
    async def wait_until_ready(self) -> None:
        """Wait until the platform connection can serve requests."""

    @abstractmethod
    async def join_channel(self, guild_id: int, channel_id: int) -> JoinResult:
        """Connect to a voice channel."""

    @abstractmethod
    async def leave_channel(self, connection_id: str) -> None:
        """Drop the voice connection identified by ``connection_id``."""

    @abstractmethod
    async def set_mute(self, guild_id: int, user_id: int, mute: bool) -> AdapterResult:
        """Server-mute or unmute a user."""

    @abstractmethod
    async def set_deafen(self, guild_id: int, user_id: int, deafen: bool) -> AdapterResult:
        """Server-deafen or undeafen a user."""

    @abstractmethod
    async def disconnect(self, guild_id: int, user_id: int) -> AdapterResult:
        """Disconnect a user from voice."""

    @abstractmethod
    async def move(
        self, guild_id: int, user_id: int, target_channel_id: int
    ) -> AdapterResult:
        """Move a user to another voice channel."""

    @abstractmethod
    def list_occupants(self, guild_id: int, channel_id: int) -> List[OccupantSnapshot]:
        """Non-bot users currently in a voice channel."""

    @abstractmethod
    def list_guilds(self) -> List[GuildInfo]:
        """Guilds the platform account can see."""

    @abstractmethod
    def list_voice_channels(self, guild_id: int) -> List[ChannelInfo]:
        """Voice channels of a guild."""
