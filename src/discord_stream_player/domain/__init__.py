# ruff: noqa: N999
"""
Domain Layer

Contains pure playback logic organized by bounded contexts:
- shared/: Cross-cutting types, messages, events and exceptions
- streaming/: Queue, playback session, telemetry parsing
"""

from discord_stream_player.domain.shared.exceptions import DomainError, StreamingError

__all__ = [
    "DomainError",
    "StreamingError",
]
