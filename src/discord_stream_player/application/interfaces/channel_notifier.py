"""Port interface for user-facing notifications in the command channel."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ChannelNotifier(ABC):
    """Interface for posting playback messages and the live progress display."""

    @abstractmethod
    async def send_info(self, title: str, description: str) -> None:
        ...

    @abstractmethod
    async def send_success(self, description: str) -> None:
        ...

    @abstractmethod
    async def send_error(self, description: str) -> None:
        ...

    @abstractmethod
    async def send_playing(self, title: str) -> None:
        ...

    @abstractmethod
    async def send_finished(self) -> None:
        ...

    @abstractmethod
    async def create_display(self, text: str) -> Any:
        """Post a persistent display message and return its handle, or None."""
        ...

    @abstractmethod
    async def edit_display(self, handle: Any, text: str) -> None:
        """Replace the text of a display message. Raises if it no longer exists."""
        ...

    @abstractmethod
    async def delete_display(self, handle: Any) -> None:
        """Delete a display message. Raises if it no longer exists."""
        ...
