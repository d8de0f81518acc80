"""
Shared Domain Kernel

Contains types and exceptions shared across all bounded contexts.
"""

from discord_stream_player.domain.shared.exceptions import (
    DomainError,
    DownloadFailureError,
    EngineRuntimeError,
    EngineStartError,
    SourceUnresolvableError,
    StreamingError,
    TransportConnectError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "StreamingError",
    "SourceUnresolvableError",
    "TransportConnectError",
    "EngineStartError",
    "EngineRuntimeError",
    "DownloadFailureError",
]
