"""Port interface for resolving user input into playable sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from discord_stream_player.domain.shared.types import NonEmptyStr
from discord_stream_player.domain.streaming.entities import SourceKind


class ResolvedSource(BaseModel):
    """Result of resolving a raw source reference."""

    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    playable_url: NonEmptyStr
    is_live: bool = False
    title: NonEmptyStr
    requires_staging: bool = False


class SourceResolver(ABC):
    """Interface for turning URLs, paths and search terms into playable sources."""

    @abstractmethod
    async def resolve(self, raw_source: NonEmptyStr) -> ResolvedSource | None:
        """Resolve a raw source. Returns None when it cannot be resolved."""
        ...

    @abstractmethod
    async def download(self, raw_source: NonEmptyStr) -> Path:
        """Stage a source locally. Raises ``DownloadFailureError`` on failure."""
        ...

    @abstractmethod
    def is_url(self, raw_source: str) -> bool:
        ...
