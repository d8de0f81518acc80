"""DTOs for the playback orchestrator."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ...domain.shared.types import NonNegativeInt
from ...domain.streaming.entities import QueueItem


class PlayStatus(Enum):
    STARTED = "started"
    ALREADY_PLAYING = "already_playing"
    QUEUE_EMPTY = "queue_empty"
    CONNECT_FAILED = "connect_failed"
    ITEM_FAILED = "item_failed"
    CANCELLED = "cancelled"


class SkipStatus(Enum):
    SKIPPED = "skipped"
    EXHAUSTED = "exhausted"
    REJECTED = "rejected"
    ADVANCING = "advancing"
    NOTHING_PLAYING = "nothing_playing"


class EnqueueResult(BaseModel):
    item: QueueItem
    position: NonNegativeInt
    queue_length: NonNegativeInt
    should_start: bool = False


class PlayResult(BaseModel):
    status: PlayStatus
    item: QueueItem | None = None
    message: str = ""

    @property
    def started(self) -> bool:
        return self.status is PlayStatus.STARTED


class SkipResult(BaseModel):
    status: SkipStatus
    skipped: QueueItem | None = None
    next_item: QueueItem | None = None

    @property
    def accepted(self) -> bool:
        return self.status in (SkipStatus.SKIPPED, SkipStatus.EXHAUSTED)


class StopResult(BaseModel):
    items_cleared: NonNegativeInt = 0
    was_playing: bool = False
