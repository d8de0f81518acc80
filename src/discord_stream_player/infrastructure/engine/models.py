"""Configuration for the ffmpeg streaming engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from discord_stream_player.application.interfaces.streaming_engine import StreamOptions

PCM_SAMPLE_RATE: Final[int] = 48000
PCM_CHANNELS: Final[int] = 2
STDERR_TAIL_LINES: Final[int] = 20
PROBE_TIMEOUT: Final[float] = 15.0
KILL_TIMEOUT: Final[float] = 2.0


def is_network_input(input_ref: str) -> bool:
    return input_ref.startswith(("http://", "https://"))


@dataclass
class FFmpegConfig:
    """Command-line building blocks for one ffmpeg session.

    Audio always goes to stdout as raw PCM for the voice transport. A video
    encode is added only when the options name a video sink.
    """

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Reconnection settings for network inputs
    reconnect: bool = True
    reconnect_streamed: bool = True
    reconnect_delay_max: int = 5

    loglevel: str = "error"

    def get_input_args(self, input_ref: str, options: StreamOptions) -> list[str]:
        """Arguments placed before ``-i``."""
        args: list[str] = []
        if is_network_input(input_ref):
            if self.reconnect:
                args += ["-reconnect", "1"]
            if self.reconnect_streamed:
                args += ["-reconnect_streamed", "1"]
            if self.reconnect_delay_max:
                args += ["-reconnect_delay_max", str(self.reconnect_delay_max)]
        if options.hardware_acceleration:
            args += ["-hwaccel", "auto"]
        if not options.is_live:
            # Read at native rate; live inputs already arrive in real time.
            args.append("-re")
        return args

    def get_video_args(self, options: StreamOptions) -> list[str]:
        if not options.video_sink:
            return []
        codec = "h264_nvenc" if options.hardware_acceleration else "libx264"
        args = [
            "-map", "0:v:0?",
            "-map", "0:a:0?",
            "-vf", f"scale={options.width}:{options.height}",
            "-c:v", codec,
            "-b:v", f"{options.bitrate_kbps}k",
            "-maxrate", f"{options.max_bitrate_kbps}k",
            "-bufsize", f"{options.max_bitrate_kbps * 2}k",
        ]
        if options.fps:
            args += ["-r", str(options.fps)]
        args += ["-c:a", "aac", "-f", "flv" if "://" in options.video_sink else "matroska"]
        args.append(options.video_sink)
        return args

    def get_audio_args(self) -> list[str]:
        return [
            "-map", "0:a:0?",
            "-vn",
            "-f", "s16le",
            "-ar", str(PCM_SAMPLE_RATE),
            "-ac", str(PCM_CHANNELS),
            "pipe:1",
        ]

    def build_command(self, input_ref: str, options: StreamOptions) -> list[str]:
        """Full argv for a session. Progress goes to stderr as key=value lines."""
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-loglevel", self.loglevel,
            "-nostats",
            "-progress", "pipe:2",
            *self.get_input_args(input_ref, options),
            "-i", input_ref,
            *self.get_video_args(options),
            *self.get_audio_args(),
        ]

    def build_duration_probe(self, input_ref: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            input_ref,
        ]

    def build_video_probe(self, input_ref: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height,r_frame_rate,avg_frame_rate,bit_rate",
            "-of", "json",
            input_ref,
        ]
