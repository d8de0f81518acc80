"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Discord (bot, cogs, voice transport, channel notifier)
- Engine (ffmpeg subprocess sessions and ffprobe probing)
- Resolver (yt-dlp metadata extraction and staging downloads)
"""

from discord_stream_player.infrastructure.discord.bot import create_bot
from discord_stream_player.infrastructure.discord.notifier import DiscordChannelNotifier
from discord_stream_player.infrastructure.discord.transport import DiscordVoiceTransport
from discord_stream_player.infrastructure.engine.ffmpeg_engine import FFmpegEngine
from discord_stream_player.infrastructure.resolver.ytdlp_resolver import YtDlpResolver

__all__ = [
    "create_bot",
    "DiscordChannelNotifier",
    "DiscordVoiceTransport",
    "FFmpegEngine",
    "YtDlpResolver",
]
