"""Engine infrastructure - ffmpeg sessions and ffprobe probing."""

from discord_stream_player.infrastructure.engine.ffmpeg_engine import FFmpegEngine
from discord_stream_player.infrastructure.engine.models import FFmpegConfig

__all__ = ["FFmpegConfig", "FFmpegEngine"]
