"""
Streaming Bounded Context

Domain logic for the playback queue, stream sessions and progress telemetry.
"""

from discord_stream_player.domain.streaming.entities import QueueItem, SourceKind
from discord_stream_player.domain.streaming.queue import PlaybackQueue
from discord_stream_player.domain.streaming.session import (
    CancellationToken,
    PlaybackSession,
    SkipGuard,
)
from discord_stream_player.domain.streaming.telemetry import (
    ProgressParser,
    TelemetrySample,
    parse_line,
    process_progress,
)
from discord_stream_player.domain.streaming.value_objects import (
    Destination,
    OrchestratorState,
    ProgressSnapshot,
    StreamStatus,
)

__all__ = [
    # Entities
    "QueueItem",
    "SourceKind",
    "PlaybackQueue",
    # Sessions
    "CancellationToken",
    "PlaybackSession",
    "SkipGuard",
    # Telemetry
    "ProgressParser",
    "TelemetrySample",
    "parse_line",
    "process_progress",
    # Value Objects
    "Destination",
    "OrchestratorState",
    "ProgressSnapshot",
    "StreamStatus",
]
