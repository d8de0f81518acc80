"""Resolver infrastructure - yt-dlp source resolution."""

from discord_stream_player.infrastructure.resolver.models import (
    CacheEntry,
    MediaFormatInfo,
    YtDlpMediaInfo,
    YtDlpOpts,
)
from discord_stream_player.infrastructure.resolver.ytdlp_resolver import YtDlpResolver

__all__ = [
    "CacheEntry",
    "MediaFormatInfo",
    "YtDlpMediaInfo",
    "YtDlpOpts",
    "YtDlpResolver",
]
