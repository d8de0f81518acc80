"""Port interface for the destination the stream is sent to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from discord_stream_player.domain.shared.types import DiscordSnowflake

if TYPE_CHECKING:
    from ...domain.streaming.session import CancellationToken
    from .streaming_engine import OutputHandle


class DestinationTransport(ABC):
    """Interface for the shared destination (a Discord voice channel)."""

    @abstractmethod
    async def connect(self, group_id: DiscordSnowflake, channel_id: DiscordSnowflake) -> bool:
        """Connect to the destination. A no-op returning True when already connected."""
        ...

    @abstractmethod
    async def disconnect(self) -> bool:
        """Leave the destination."""
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def set_activity_text(self, text: str | None) -> None:
        """Show ``text`` as presence-style status; None restores the idle status."""
        ...

    @abstractmethod
    async def stream(self, output: OutputHandle, cancel_token: CancellationToken) -> None:
        """Send ``output`` to the destination until it is exhausted or cancelled.

        Raises on transport failures while sending.
        """
        ...
