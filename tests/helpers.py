"""
Test doubles and helpers shared by the test suite.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from discord_multihost.core.models import EventPolicy, HostRole, OccupantSnapshot
from discord_multihost.platform.adapter import (
    AdapterResult,
    ChannelInfo,
    GuildInfo,
    JoinResult,
    VoicePlatformAdapter,
)

GUILD_ID = 123456789
CHANNEL_ID = 987654321
OTHER_CHANNEL_ID = 987654322
OWNER_ID = 1000
CO_HOST_ID = 2000
MODERATOR_ID = 3000
ALICE_ID = 111
BOB_ID = 222
CAROL_ID = 333


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeVoiceAdapter(VoicePlatformAdapter):
    """
    Scripted voice platform.

    Records every primitive call, returns configurable results, and lets
    tests emit voice-state events on the connection it handed out.
    """

    def __init__(self):
        super().__init__()
        self.occupants: Dict[int, List[OccupantSnapshot]] = {}
        self.calls: List[tuple] = []
        self.join_result: Optional[JoinResult] = None
        self.join_delay: float = 0.0
        self.join_error: Optional[Exception] = None
        self.results: Dict[str, AdapterResult] = {}
        self.errors: Dict[str, Exception] = {}
        self.left: List[str] = []
        self._joins = 0

    def _primitive(self, name: str, *args) -> AdapterResult:
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]
        return self.results.get(name, AdapterResult.ok())

    async def wait_until_ready(self) -> None:
        return None

    async def join_channel(self, guild_id: int, channel_id: int) -> JoinResult:
        self.calls.append(("join_channel", guild_id, channel_id))
        if self.join_delay:
            await asyncio.sleep(self.join_delay)
        if self.join_error is not None:
            raise self.join_error
        if self.join_result is not None:
            return self.join_result
        self._joins += 1
        return JoinResult.joined(f"conn-{self._joins}")

    async def leave_channel(self, connection_id: str) -> None:
        self.left.append(connection_id)

    async def set_mute(self, guild_id: int, user_id: int, mute: bool) -> AdapterResult:
        return self._primitive("set_mute", guild_id, user_id, mute)

    async def set_deafen(self, guild_id: int, user_id: int, deafen: bool) -> AdapterResult:
        return self._primitive("set_deafen", guild_id, user_id, deafen)

    async def disconnect(self, guild_id: int, user_id: int) -> AdapterResult:
        return self._primitive("disconnect", guild_id, user_id)

    async def move(self, guild_id: int, user_id: int, target_channel_id: int) -> AdapterResult:
        return self._primitive("move", guild_id, user_id, target_channel_id)

    def list_occupants(self, guild_id: int, channel_id: int) -> List[OccupantSnapshot]:
        return list(self.occupants.get(channel_id, []))

    def list_guilds(self) -> List[GuildInfo]:
        return [GuildInfo(GUILD_ID, "Test Guild")]

    def list_voice_channels(self, guild_id: int) -> List[ChannelInfo]:
        if guild_id != GUILD_ID:
            return []
        return [
            ChannelInfo(CHANNEL_ID, "Stage", len(self.occupants.get(CHANNEL_ID, []))),
            ChannelInfo(OTHER_CHANNEL_ID, "Lobby", 0),
        ]

    def primitive_calls(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]


async def create_session(manager, policy: Optional[EventPolicy] = None):
    """Create a session in the stage channel owned by OWNER_ID."""
    return await manager.create_session(
        guild_id=GUILD_ID,
        guild_name="Test Guild",
        voice_channel_id=CHANNEL_ID,
        voice_channel_name="Stage",
        owner_id=OWNER_ID,
        owner_username="owner",
        policy=policy,
    )


async def create_live_session(manager, policy: Optional[EventPolicy] = None):
    """Create and start a session, then add a co-host and a moderator."""
    session = await create_session(manager, policy)
    result = await manager.start_session(session.session_id)
    assert result.success, result.message
    await manager.add_host(session.session_id, OWNER_ID, CO_HOST_ID, "cohost", HostRole.CO_HOST)
    await manager.add_host(session.session_id, OWNER_ID, MODERATOR_ID, "mod", HostRole.MODERATOR)
    return await manager.get_session(session.session_id)


def drain(subscription) -> list:
    """Pull every pending notification off a subscription."""
    items = []
    while subscription.pending():
        items.append(subscription.get_nowait())
    return items
