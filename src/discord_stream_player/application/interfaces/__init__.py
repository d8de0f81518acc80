"""
Application Interfaces (Ports)

Abstract interfaces that define contracts between the application
layer and infrastructure adapters. These are the "ports" in
hexagonal architecture.
"""

from discord_stream_player.application.interfaces.channel_notifier import ChannelNotifier
from discord_stream_player.application.interfaces.destination_transport import (
    DestinationTransport,
)
from discord_stream_player.application.interfaces.source_resolver import (
    ResolvedSource,
    SourceResolver,
)
from discord_stream_player.application.interfaces.streaming_engine import (
    EngineEvent,
    EngineExited,
    EngineFailed,
    EngineSession,
    StreamingEngine,
    StreamOptions,
    TelemetryLine,
    VideoParams,
)

__all__ = [
    "ChannelNotifier",
    "DestinationTransport",
    "ResolvedSource",
    "SourceResolver",
    "StreamingEngine",
    "EngineSession",
    "EngineEvent",
    "TelemetryLine",
    "EngineFailed",
    "EngineExited",
    "StreamOptions",
    "VideoParams",
]
