"""Core domain entities for the streaming bounded context."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from discord_stream_player.domain.shared.datetime_utils import utcnow
from discord_stream_player.domain.shared.types import (
    ItemId,
    NonEmptyStr,
    TitleStr,
    UtcDatetimeField,
)


class SourceKind(Enum):
    """Where a queued source came from."""

    URL = "url"
    FILE = "file"
    SEARCH_RESULT = "search-result"


class QueueItem(BaseModel):
    """Immutable entry of the playback queue.

    Items are only ever created by ``PlaybackQueue.enqueue`` which assigns the id.
    """

    model_config = ConfigDict(frozen=True)

    id: ItemId
    source_ref: NonEmptyStr
    title: TitleStr
    submitter: NonEmptyStr
    source_kind: SourceKind = SourceKind.URL
    is_live: bool = False
    added_at: UtcDatetimeField = Field(default_factory=utcnow)

    @property
    def display_title(self) -> str:
        if self.is_live:
            return f"{self.title} [LIVE]"
        return self.title
