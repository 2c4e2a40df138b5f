"""
Discord implementation of the voice platform adapter.

Wraps a discord.py client: joins voice channels (one voice client per
guild, as Discord allows), applies server mute/deafen/move/disconnect to
members, lists channel occupants, and turns gateway voice-state updates into
join/leave/state-changed events for every channel the bot is connected to.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import discord

from discord_multihost.core.models import OccupantSnapshot
from discord_multihost.infrastructure import setup_logging
from discord_multihost.infrastructure.exceptions import PlatformError

from .adapter import (
    AdapterResult,
    ChannelInfo,
    GuildInfo,
    JoinResult,
    VoicePlatformAdapter,
)

logger = setup_logging(
    component_name="discord_adapter",
    log_file="logs/discord_adapter.log",
)


def connection_key(guild_id: int, channel_id: int) -> str:
    return f"{guild_id}:{channel_id}"


def snapshot_from_member(member: discord.Member, voice: Optional[discord.VoiceState] = None) -> OccupantSnapshot:
    """Build an occupant snapshot from a member and one of their voice states."""
    voice = voice if voice is not None else member.voice
    return OccupantSnapshot(
        user_id=member.id,
        username=member.name,
        is_server_muted=bool(voice and voice.mute),
        is_server_deafened=bool(voice and voice.deaf),
        is_self_muted=bool(voice and voice.self_mute),
        is_self_deafened=bool(voice and voice.self_deaf),
    )


class DiscordVoiceAdapter(VoicePlatformAdapter):
    """Voice platform adapter backed by a discord.py client."""

    def __init__(self, client: Optional[discord.Client] = None, voice_timeout: float = 20.0):
        """
        Args:
            client: Existing client to wrap; a new one with the guild,
                voice-state and member intents is created if omitted
            voice_timeout: Timeout passed to discord.py's voice connect
        """
        super().__init__()
        if client is None:
            intents = discord.Intents.default()
            intents.guilds = True
            intents.voice_states = True
            intents.members = True
            client = discord.Client(intents=intents)

        self.client = client
        self.voice_timeout = voice_timeout
        # connection id -> (guild id, channel id)
        self._connections: Dict[str, Tuple[int, int]] = {}

        self.client.event(self.on_ready)
        self.client.event(self.on_voice_state_update)

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------

    async def start(self, token: str) -> None:
        """Log in and run the gateway connection until closed."""
        try:
            await self.client.start(token)
        except discord.LoginFailure as e:
            raise PlatformError("Discord rejected the bot token", detail=str(e))

    async def close(self) -> None:
        for connection_id in list(self._connections):
            await self.leave_channel(connection_id)
        await self.client.close()

    async def on_ready(self) -> None:
        logger.info(f"Bot is ready: {self.client.user}")

    async def wait_until_ready(self) -> None:
        await self.client.wait_until_ready()

    @property
    def is_connected(self) -> bool:
        return self.client.is_ready() and not self.client.is_closed()

    # ------------------------------------------------------------------
    # Voice connections
    # ------------------------------------------------------------------

    async def join_channel(self, guild_id: int, channel_id: int) -> JoinResult:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            return JoinResult.fail(f"Guild {guild_id} not found")

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel):
            return JoinResult.fail(f"Voice channel {channel_id} not found")

        key = connection_key(guild_id, channel_id)
        voice_client = guild.voice_client
        replaced = None

        try:
            if voice_client is not None and voice_client.is_connected():
                if voice_client.channel.id != channel_id:
                    # One voice connection per guild: moving drops the old binding
                    old_key = connection_key(guild_id, voice_client.channel.id)
                    await voice_client.move_to(channel)
                    replaced = old_key
            else:
                await channel.connect(timeout=self.voice_timeout, reconnect=True)
        except asyncio.TimeoutError:
            logger.error(f"Voice connection to {channel.name} timed out")
            return JoinResult.fail("Voice connection timed out")
        except discord.ClientException as e:
            logger.error(f"Error joining voice: {e}")
            return JoinResult.fail(str(e))
        except RuntimeError as e:
            # discord.py raises RuntimeError when PyNaCl is not installed
            logger.error(f"Voice support unavailable: {e}")
            return JoinResult.fail(str(e))

        if replaced is not None and self._connections.pop(replaced, None) is not None:
            logger.warning(f"Voice connection {replaced} replaced by move to {channel.name}")
            await self.emit_connection_lost(replaced)

        self._connections[key] = (guild_id, channel_id)
        logger.info(f"Connected to {channel.name}")
        return JoinResult.joined(key)

    async def leave_channel(self, connection_id: str) -> None:
        binding = self._connections.pop(connection_id, None)
        if binding is None:
            return

        guild = self.client.get_guild(binding[0])
        voice_client = guild.voice_client if guild is not None else None
        if voice_client is not None:
            await voice_client.disconnect(force=False)
            logger.info("Disconnected from voice")

    # ------------------------------------------------------------------
    # Moderation primitives
    # ------------------------------------------------------------------

    def _voice_member(self, guild_id: int, user_id: int) -> Optional[discord.Member]:
        guild = self.client.get_guild(guild_id)
        member = guild.get_member(user_id) if guild is not None else None
        if member is None or member.voice is None or member.voice.channel is None:
            return None
        return member

    async def _edit_member(self, guild_id: int, user_id: int, description: str, **changes) -> AdapterResult:
        member = self._voice_member(guild_id, user_id)
        if member is None:
            return AdapterResult.fail(f"User {user_id} is not in a voice channel")

        try:
            if "voice_channel" in changes:
                await member.move_to(changes["voice_channel"], reason=description)
            else:
                await member.edit(reason=description, **changes)
        except discord.HTTPException as e:
            logger.error(f"{description} for {member.name} failed: {e}")
            return AdapterResult.fail(str(e))
        return AdapterResult.ok()

    async def set_mute(self, guild_id: int, user_id: int, mute: bool) -> AdapterResult:
        return await self._edit_member(
            guild_id, user_id, "MultiHost mute" if mute else "MultiHost unmute", mute=mute
        )

    async def set_deafen(self, guild_id: int, user_id: int, deafen: bool) -> AdapterResult:
        return await self._edit_member(
            guild_id, user_id, "MultiHost deafen" if deafen else "MultiHost undeafen", deafen=deafen
        )

    async def disconnect(self, guild_id: int, user_id: int) -> AdapterResult:
        return await self._edit_member(
            guild_id, user_id, "MultiHost disconnect", voice_channel=None
        )

    async def move(self, guild_id: int, user_id: int, target_channel_id: int) -> AdapterResult:
        guild = self.client.get_guild(guild_id)
        target = guild.get_channel(target_channel_id) if guild is not None else None
        if not isinstance(target, discord.VoiceChannel):
            return AdapterResult.fail(f"Voice channel {target_channel_id} not found")
        return await self._edit_member(
            guild_id, user_id, "MultiHost move", voice_channel=target
        )

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list_occupants(self, guild_id: int, channel_id: int) -> List[OccupantSnapshot]:
        guild = self.client.get_guild(guild_id)
        channel = guild.get_channel(channel_id) if guild is not None else None
        if not isinstance(channel, discord.VoiceChannel):
            return []
        return [snapshot_from_member(m) for m in channel.members if not m.bot]

    def list_guilds(self) -> List[GuildInfo]:
        return [GuildInfo(g.id, g.name) for g in self.client.guilds]

    def list_voice_channels(self, guild_id: int) -> List[ChannelInfo]:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            return []
        return [
            ChannelInfo(c.id, c.name, len([m for m in c.members if not m.bot]))
            for c in guild.voice_channels
        ]

    # ------------------------------------------------------------------
    # Gateway events
    # ------------------------------------------------------------------

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            if self.client.user is not None and member.id == self.client.user.id and after.channel is None:
                await self._drop_guild_connections(member.guild.id)
            return

        before_id = before.channel.id if before.channel is not None else None
        after_id = after.channel.id if after.channel is not None else None

        for connection_id, (guild_id, channel_id) in list(self._connections.items()):
            if member.guild.id != guild_id:
                continue

            was_in = before_id == channel_id
            is_in = after_id == channel_id
            if not was_in and is_in:
                await self.emit_user_joined(connection_id, snapshot_from_member(member, after))
            elif was_in and not is_in:
                await self.emit_user_left(connection_id, member.id)
            elif was_in and is_in:
                await self.emit_user_state_changed(
                    connection_id, snapshot_from_member(member, after)
                )

    async def _drop_guild_connections(self, guild_id: int) -> None:
        """Forget bindings in a guild whose voice client went away."""
        for connection_id, binding in list(self._connections.items()):
            if binding[0] != guild_id:
                continue
            del self._connections[connection_id]
            logger.warning(f"Voice connection {connection_id} was dropped")
            await self.emit_connection_lost(connection_id)
