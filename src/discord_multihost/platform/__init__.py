"""
Voice platform layer for the Discord MultiHost system.

Defines the adapter interface the coordinator depends on and its
discord.py implementation.
"""

from .adapter import (
    AdapterResult,
    ChannelInfo,
    GuildInfo,
    JoinResult,
    VoiceEventListener,
    VoicePlatformAdapter,
)
from .discord_adapter import DiscordVoiceAdapter

__all__ = [
    "AdapterResult",
    "ChannelInfo",
    "GuildInfo",
    "JoinResult",
    "VoiceEventListener",
    "VoicePlatformAdapter",
    "DiscordVoiceAdapter",
]
