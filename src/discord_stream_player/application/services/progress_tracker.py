"""Progress Tracker Service

Holds the authoritative progress snapshot of the active stream and pushes it
to the progress display message and the bot's activity text, each channel
rate limited independently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from discord_stream_player.domain.shared.datetime_utils import format_clock
from discord_stream_player.domain.shared.messages import DiscordUIMessages, LogTemplates
from discord_stream_player.domain.streaming.value_objects import ProgressSnapshot

if TYPE_CHECKING:
    from discord_stream_player.application.interfaces.channel_notifier import ChannelNotifier
    from discord_stream_player.application.interfaces.destination_transport import (
        DestinationTransport,
    )
    from discord_stream_player.domain.streaming.value_objects import StreamStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_SIGNIFICANT_CHANGE = 5


class ProgressChannel(Enum):
    """Outputs the tracker refreshes."""

    DISPLAY = "display"
    ACTIVITY = "activity"


def render_progress_bar(percent: int) -> str:
    segments = DiscordUIMessages.PROGRESS_BAR_SEGMENTS
    filled = max(0, min(segments, percent // 10))
    return (
        DiscordUIMessages.PROGRESS_BAR_FILLED * filled
        + DiscordUIMessages.PROGRESS_BAR_EMPTY * (segments - filled)
    )


def render_progress(snapshot: ProgressSnapshot) -> str:
    """Render a snapshot as display text.

    Live streams (or unknown duration) show elapsed time only; finite streams
    show a 10-segment bar, percent and ``current/total``.
    """
    if snapshot.is_live or snapshot.duration_seconds <= 0:
        return DiscordUIMessages.PROGRESS_LIVE.format(
            elapsed=format_clock(snapshot.current_time_seconds), title=snapshot.title
        )
    return DiscordUIMessages.PROGRESS_VOD.format(
        bar=render_progress_bar(snapshot.percent),
        percent=snapshot.percent,
        current=format_clock(snapshot.current_time_seconds),
        total=format_clock(snapshot.duration_seconds),
        title=snapshot.title,
    )


class ProgressTracker:
    """Rate-limited progress reporting for the active stream.

    A periodic task refreshes every channel once per interval, even without
    new samples. ``update`` refreshes a channel immediately only when the
    percent moved by at least ``significant_change`` points since the value
    last shown on that channel.
    """

    def __init__(
        self,
        status: StreamStatus,
        notifier: ChannelNotifier,
        transport: DestinationTransport | None = None,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        significant_change: int = DEFAULT_SIGNIFICANT_CHANGE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._status = status
        self._notifier = notifier
        self._transport = transport
        self._interval = interval_seconds
        self._significant_change = significant_change
        self._clock = clock

        self._session_id: int | None = None
        self._snapshot: ProgressSnapshot | None = None
        self._display_handle: Any = None
        self._timer: asyncio.Task[None] | None = None
        self._last_emit: dict[ProgressChannel, float] = {}
        self._last_shown_percent: dict[ProgressChannel, int] = {}

    # ── Properties ───────────────────────────────────────────────────

    @property
    def session_id(self) -> int | None:
        return self._session_id

    @property
    def snapshot(self) -> ProgressSnapshot | None:
        return self._snapshot

    @property
    def is_tracking(self) -> bool:
        return self._session_id is not None

    @property
    def display_handle(self) -> Any:
        return self._display_handle

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(
        self,
        session_id: int,
        title: str,
        duration_seconds: int,
        is_live: bool,
        post_message: bool = True,
    ) -> None:
        """Begin tracking a new session, replacing any previous one."""
        await self.stop()

        self._session_id = session_id
        self._set_snapshot(ProgressSnapshot.initial(title, duration_seconds, is_live))
        logger.info(LogTemplates.PROGRESS_STARTED, title)

        now = self._clock()
        if post_message:
            try:
                self._display_handle = await self._notifier.create_display(
                    render_progress(self._snapshot)
                )
            except Exception as exc:
                logger.warning(LogTemplates.PROGRESS_DISPLAY_FAILED, exc)
                self._display_handle = None
            else:
                self._mark_shown(ProgressChannel.DISPLAY, 0, now)

        await self._emit(ProgressChannel.ACTIVITY, now)

        self._timer = asyncio.create_task(self._run_timer(session_id))

    async def update(self, session_id: int, snapshot: ProgressSnapshot) -> bool:
        """Replace the snapshot and refresh channels that are due.

        Returns True when at least one channel was refreshed.
        """
        if session_id != self._session_id:
            logger.debug(LogTemplates.PROGRESS_STALE_UPDATE, session_id)
            return False

        self._set_snapshot(snapshot)

        now = self._clock()
        refreshed = False
        for channel in ProgressChannel:
            if self._is_due(channel, snapshot.percent, now):
                refreshed = await self._emit(channel, now) or refreshed
        return refreshed

    async def tick(self) -> None:
        """Refresh every channel whose interval has elapsed."""
        if self._snapshot is None:
            return
        now = self._clock()
        for channel in ProgressChannel:
            last = self._last_emit.get(channel)
            if last is None or now - last >= self._interval:
                await self._emit(channel, now)

    async def stop(self) -> None:
        """Stop tracking. Deleting the display message is best effort."""
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer

        handle, self._display_handle = self._display_handle, None
        if handle is not None:
            try:
                await self._notifier.delete_display(handle)
            except Exception as exc:
                logger.debug(LogTemplates.PROGRESS_DISPLAY_DELETE_FAILED, exc)

        was_tracking = self._session_id is not None
        self._session_id = None
        self._snapshot = None
        self._status.current_progress = None
        self._last_emit.clear()
        self._last_shown_percent.clear()
        if was_tracking:
            logger.info(LogTemplates.PROGRESS_STOPPED)

    # ── Internals ────────────────────────────────────────────────────

    def _set_snapshot(self, snapshot: ProgressSnapshot) -> None:
        self._snapshot = snapshot
        self._status.current_progress = snapshot

    def _is_due(self, channel: ProgressChannel, percent: int, now: float) -> bool:
        last = self._last_emit.get(channel)
        if last is None:
            return True
        if abs(percent - self._last_shown_percent.get(channel, 0)) >= self._significant_change:
            return True
        return now - last >= self._interval

    def _mark_shown(self, channel: ProgressChannel, percent: int, now: float) -> None:
        self._last_emit[channel] = now
        self._last_shown_percent[channel] = percent

    async def _emit(self, channel: ProgressChannel, now: float) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False

        text = render_progress(snapshot)
        try:
            if channel is ProgressChannel.DISPLAY:
                if self._display_handle is None:
                    return False
                await self._notifier.edit_display(self._display_handle, text)
            else:
                if self._transport is None:
                    return False
                await self._transport.set_activity_text(text)
        except Exception as exc:
            template = (
                LogTemplates.PROGRESS_DISPLAY_FAILED
                if channel is ProgressChannel.DISPLAY
                else LogTemplates.PROGRESS_ACTIVITY_FAILED
            )
            logger.warning(template, exc)
            return False

        self._mark_shown(channel, snapshot.percent, now)
        return True

    async def _run_timer(self, session_id: int) -> None:
        while self._session_id == session_id:
            await asyncio.sleep(self._interval)
            if self._session_id != session_id:
                break
            await self.tick()
