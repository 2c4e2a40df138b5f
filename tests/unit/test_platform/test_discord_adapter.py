"""
Unit tests for the discord.py voice adapter.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

import discord

from discord_multihost.core.models import OccupantSnapshot
from discord_multihost.platform.discord_adapter import DiscordVoiceAdapter

GUILD_ID = 123456789
CHANNEL_ID = 987654321
OTHER_CHANNEL_ID = 987654322


def make_member(user_id, name, channel=None, bot=False, mute=False, deaf=False):
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.name = name
    member.bot = bot
    member.edit = AsyncMock()
    member.move_to = AsyncMock()
    if channel is None:
        member.voice = None
    else:
        member.voice = MagicMock(spec=discord.VoiceState)
        member.voice.channel = channel
        member.voice.mute = mute
        member.voice.deaf = deaf
        member.voice.self_mute = False
        member.voice.self_deaf = False
    return member


def make_voice_state(channel=None, mute=False):
    state = MagicMock(spec=discord.VoiceState)
    state.channel = channel
    state.mute = mute
    state.deaf = False
    state.self_mute = False
    state.self_deaf = False
    return state


def http_error(message="Missing Permissions"):
    response = MagicMock()
    response.status = 403
    response.reason = "Forbidden"
    return discord.Forbidden(response, message)


@pytest.fixture
def voice_channel():
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = CHANNEL_ID
    channel.name = "Stage"
    channel.connect = AsyncMock()
    channel.members = []
    return channel


@pytest.fixture
def other_channel():
    channel = MagicMock(spec=discord.VoiceChannel)
    channel.id = OTHER_CHANNEL_ID
    channel.name = "Lobby"
    channel.members = []
    return channel


@pytest.fixture
def guild(voice_channel, other_channel):
    guild = MagicMock(spec=discord.Guild)
    guild.id = GUILD_ID
    guild.name = "Test Guild"
    guild.voice_client = None
    guild.voice_channels = [voice_channel, other_channel]
    channels = {CHANNEL_ID: voice_channel, OTHER_CHANNEL_ID: other_channel}
    guild.get_channel.side_effect = channels.get
    guild.members = {}
    guild.get_member.side_effect = lambda user_id: guild.members.get(user_id)
    return guild


@pytest.fixture
def adapter(guild):
    client = MagicMock(spec=discord.Client)
    client.guilds = [guild]
    client.get_guild.side_effect = lambda gid: guild if gid == GUILD_ID else None
    client.wait_until_ready = AsyncMock()
    return DiscordVoiceAdapter(client=client)


@pytest.fixture
def listener():
    listener = MagicMock()
    listener.on_user_joined = AsyncMock()
    listener.on_user_left = AsyncMock()
    listener.on_user_state_changed = AsyncMock()
    listener.on_connection_lost = AsyncMock()
    return listener


class TestVoiceConnection:
    """Test cases for joining and leaving voice channels."""

    @pytest.mark.unit
    def test_registers_gateway_events(self, adapter):
        registered = [c.args[0] for c in adapter.client.event.call_args_list]

        assert adapter.on_voice_state_update in registered
        assert adapter.on_ready in registered

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_channel(self, adapter, voice_channel):
        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert result.success
        assert result.connection_id == f"{GUILD_ID}:{CHANNEL_ID}"
        voice_channel.connect.assert_awaited_once_with(timeout=20.0, reconnect=True)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_unknown_guild_or_channel(self, adapter):
        assert not (await adapter.join_channel(1, CHANNEL_ID)).success
        result = await adapter.join_channel(GUILD_ID, 5)
        assert result.success is False
        assert "not found" in result.reason

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_timeout(self, adapter, voice_channel):
        voice_channel.connect.side_effect = asyncio.TimeoutError()

        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert result.success is False
        assert result.reason == "Voice connection timed out"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_client_exception(self, adapter, voice_channel):
        voice_channel.connect.side_effect = discord.ClientException("Already connected")

        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert result.reason == "Already connected"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_moves_existing_voice_client(self, adapter, guild, voice_channel, other_channel):
        voice_client = MagicMock()
        voice_client.is_connected.return_value = True
        voice_client.channel = other_channel
        voice_client.move_to = AsyncMock()
        guild.voice_client = voice_client

        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert result.success
        voice_client.move_to.assert_awaited_once_with(voice_channel)
        voice_channel.connect.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_move_reports_replaced_connection(self, adapter, guild, voice_channel, other_channel, listener):
        adapter.add_listener(listener)
        other_channel.connect = AsyncMock()
        old = (await adapter.join_channel(GUILD_ID, OTHER_CHANNEL_ID)).connection_id
        voice_client = MagicMock()
        voice_client.is_connected.return_value = True
        voice_client.channel = other_channel
        voice_client.move_to = AsyncMock()
        guild.voice_client = voice_client

        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert result.connection_id != old
        listener.on_connection_lost.assert_awaited_once_with(old)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejoining_same_channel_keeps_connection(self, adapter, guild, voice_channel, listener):
        adapter.add_listener(listener)
        first = await adapter.join_channel(GUILD_ID, CHANNEL_ID)
        voice_client = MagicMock()
        voice_client.is_connected.return_value = True
        voice_client.channel = voice_channel
        voice_client.move_to = AsyncMock()
        guild.voice_client = voice_client

        second = await adapter.join_channel(GUILD_ID, CHANNEL_ID)

        assert second.connection_id == first.connection_id
        voice_client.move_to.assert_not_awaited()
        listener.on_connection_lost.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_leave_channel(self, adapter, guild):
        result = await adapter.join_channel(GUILD_ID, CHANNEL_ID)
        voice_client = MagicMock()
        voice_client.disconnect = AsyncMock()
        guild.voice_client = voice_client

        await adapter.leave_channel(result.connection_id)
        await adapter.leave_channel(result.connection_id)

        voice_client.disconnect.assert_awaited_once_with(force=False)


class TestModerationPrimitives:
    """Test cases for member edits."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_set_mute(self, adapter, guild, voice_channel):
        member = make_member(111, "alice", voice_channel)
        guild.members[111] = member

        result = await adapter.set_mute(GUILD_ID, 111, True)

        assert result.success
        member.edit.assert_awaited_once_with(reason="MultiHost mute", mute=True)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_set_deafen_forbidden(self, adapter, guild, voice_channel):
        member = make_member(111, "alice", voice_channel)
        member.edit.side_effect = http_error()
        guild.members[111] = member

        result = await adapter.set_deafen(GUILD_ID, 111, True)

        assert result.success is False
        assert "Missing Permissions" in result.reason

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_member_not_in_voice(self, adapter, guild):
        guild.members[111] = make_member(111, "alice")

        result = await adapter.set_mute(GUILD_ID, 111, True)

        assert result.success is False
        guild.members[111].edit.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disconnect(self, adapter, guild, voice_channel):
        member = make_member(111, "alice", voice_channel)
        guild.members[111] = member

        assert (await adapter.disconnect(GUILD_ID, 111)).success
        member.move_to.assert_awaited_once_with(None, reason="MultiHost disconnect")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_move(self, adapter, guild, voice_channel, other_channel):
        member = make_member(111, "alice", voice_channel)
        guild.members[111] = member

        assert (await adapter.move(GUILD_ID, 111, OTHER_CHANNEL_ID)).success
        member.move_to.assert_awaited_once_with(other_channel, reason="MultiHost move")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_move_to_unknown_channel(self, adapter, guild, voice_channel):
        guild.members[111] = make_member(111, "alice", voice_channel)

        result = await adapter.move(GUILD_ID, 111, 5)

        assert result.success is False
        guild.members[111].move_to.assert_not_awaited()


class TestEnumeration:
    """Test cases for occupant, guild and channel listing."""

    @pytest.mark.unit
    def test_list_occupants_skips_bots(self, adapter, voice_channel):
        voice_channel.members = [
            make_member(111, "alice", voice_channel, mute=True),
            make_member(999, "bot", voice_channel, bot=True),
        ]

        occupants = adapter.list_occupants(GUILD_ID, CHANNEL_ID)

        assert occupants == [OccupantSnapshot(111, "alice", is_server_muted=True)]

    @pytest.mark.unit
    def test_list_guilds_and_channels(self, adapter, voice_channel):
        voice_channel.members = [make_member(111, "alice", voice_channel)]

        assert [(g.guild_id, g.name) for g in adapter.list_guilds()] == [(GUILD_ID, "Test Guild")]
        channels = adapter.list_voice_channels(GUILD_ID)
        assert [(c.channel_id, c.occupant_count) for c in channels] == [
            (CHANNEL_ID, 1),
            (OTHER_CHANNEL_ID, 0),
        ]
        assert adapter.list_voice_channels(1) == []


class TestVoiceStateEvents:
    """Test cases for gateway voice-state routing."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_join_leave_and_change(self, adapter, guild, voice_channel, other_channel, listener):
        adapter.add_listener(listener)
        connection_id = (await adapter.join_channel(GUILD_ID, CHANNEL_ID)).connection_id
        member = make_member(111, "alice", voice_channel)
        member.guild = guild

        await adapter.on_voice_state_update(
            member, make_voice_state(None), make_voice_state(voice_channel)
        )
        await adapter.on_voice_state_update(
            member, make_voice_state(voice_channel), make_voice_state(voice_channel, mute=True)
        )
        await adapter.on_voice_state_update(
            member, make_voice_state(voice_channel), make_voice_state(other_channel)
        )

        listener.on_user_joined.assert_awaited_once_with(
            connection_id, OccupantSnapshot(111, "alice")
        )
        listener.on_user_state_changed.assert_awaited_once_with(
            connection_id, OccupantSnapshot(111, "alice", is_server_muted=True)
        )
        listener.on_user_left.assert_awaited_once_with(connection_id, 111)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ignores_bots_and_other_channels(self, adapter, guild, voice_channel, other_channel, listener):
        adapter.add_listener(listener)
        await adapter.join_channel(GUILD_ID, CHANNEL_ID)
        bot = make_member(999, "bot", voice_channel, bot=True)
        bot.guild = guild
        member = make_member(111, "alice", other_channel)
        member.guild = guild

        await adapter.on_voice_state_update(
            bot, make_voice_state(None), make_voice_state(voice_channel)
        )
        await adapter.on_voice_state_update(
            member, make_voice_state(None), make_voice_state(other_channel)
        )

        listener.on_user_joined.assert_not_awaited()
        listener.on_user_left.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bot_removed_from_voice_drops_connection(self, adapter, guild, voice_channel, listener):
        adapter.add_listener(listener)
        connection_id = (await adapter.join_channel(GUILD_ID, CHANNEL_ID)).connection_id
        adapter.client.user = MagicMock(id=999)
        bot = make_member(999, "bot", None, bot=True)
        bot.guild = guild
        member = make_member(111, "alice", voice_channel)
        member.guild = guild

        await adapter.on_voice_state_update(
            bot, make_voice_state(voice_channel), make_voice_state(None)
        )
        await adapter.on_voice_state_update(
            member, make_voice_state(None), make_voice_state(voice_channel)
        )

        listener.on_connection_lost.assert_awaited_once_with(connection_id)
        listener.on_user_joined.assert_not_awaited()
