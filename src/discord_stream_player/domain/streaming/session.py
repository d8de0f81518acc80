"""Per-attempt playback session, cancellation token and the skip guard."""

from __future__ import annotations

import asyncio
import itertools
from enum import Enum
from typing import Any

from discord_stream_player.domain.streaming.entities import QueueItem

_session_ids = itertools.count(1)


class CancellationToken:
    """One-shot cancellation signal shared by a session and its engine run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class PlaybackSession:
    """State of one stream attempt for one queue item.

    ``manual_stop`` is set synchronously by skip/stop requests and is the
    source of truth when deciding between natural completion and a stop.
    """

    def __init__(self, item: QueueItem) -> None:
        self.session_id: int = next(_session_ids)
        self.item = item
        self.cancel_token = CancellationToken()
        self.manual_stop = False
        self.failed = False
        self.error: Exception | None = None
        self.engine_session: Any = None
        self.temp_path: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def request_stop(self) -> None:
        """Mark the session as manually stopped and fire its token."""
        self.manual_stop = True
        self.cancel_token.cancel()

    def fail(self, error: Exception) -> None:
        """Record the first failure and fire the token."""
        if not self.failed:
            self.failed = True
            self.error = error
        self.cancel_token.cancel()

    @property
    def completed_naturally(self) -> bool:
        return not self.manual_stop and not self.failed and not self.is_cancelled

    def __repr__(self) -> str:
        return f"PlaybackSession(id={self.session_id}, item={self.item.id}, title={self.item.title!r})"


class SkipMode(Enum):
    """What an accepted skip is going to do."""

    HANDING_OFF = "handing_off"  # another item follows, a new session is started
    DRAINING = "draining"  # the queue empties, playback only stops


class SkipDecision(Enum):
    ACCEPTED = "accepted"
    ACCEPTED_CONCURRENT = "accepted_concurrent"
    REJECTED = "rejected"


class SkipGuard:
    """Single-flight guard for skip requests.

    A skip that hands off to a next item holds the guard exclusively. A skip
    that would empty the queue only has to stop playback, so it may run while
    another draining skip is in flight, but never alongside a hand-off.
    """

    def __init__(self) -> None:
        self._mode: SkipMode | None = None

    @property
    def in_flight(self) -> bool:
        return self._mode is not None

    @property
    def mode(self) -> SkipMode | None:
        return self._mode

    @staticmethod
    def mode_for(remaining_items: int) -> SkipMode:
        return SkipMode.DRAINING if remaining_items <= 1 else SkipMode.HANDING_OFF

    def try_acquire(self, remaining_items: int) -> SkipDecision:
        requested = self.mode_for(remaining_items)

        if self._mode is None:
            self._mode = requested
            return SkipDecision.ACCEPTED

        if self._mode is SkipMode.DRAINING and requested is SkipMode.DRAINING:
            return SkipDecision.ACCEPTED_CONCURRENT

        return SkipDecision.REJECTED

    def release(self, decision: SkipDecision) -> None:
        # Concurrent draining skips never owned the guard.
        if decision is SkipDecision.ACCEPTED:
            self._mode = None
