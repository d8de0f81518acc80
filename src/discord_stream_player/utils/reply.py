"""Utility functions for formatting Discord messages."""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache
from typing import TYPE_CHECKING

from discord_stream_player.domain.shared.messages import DiscordUIMessages

if TYPE_CHECKING:
    from discord_stream_player.domain.streaming.entities import QueueItem

QUEUE_TITLE_LENGTH = 80


@lru_cache(maxsize=256)
def truncate(text: str, max_length: int = 90) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 1] + "…"


def format_queue(items: Iterable[QueueItem], *, limit: int = 10) -> str:
    """Render queued items as numbered lines.

    Only the first ``limit`` items are listed; the rest are summarised on a
    trailing line. An empty queue renders the empty-queue message.
    """
    entries = list(items)
    if not entries:
        return DiscordUIMessages.STATE_QUEUE_EMPTY

    lines = [
        DiscordUIMessages.STATE_QUEUE_LINE.format(
            position=index,
            title=truncate(item.display_title, QUEUE_TITLE_LENGTH),
            submitter=item.submitter,
        )
        for index, item in enumerate(entries[:limit], start=1)
    ]
    if len(entries) > limit:
        lines.append(f"... and {len(entries) - limit} more")
    return "\n".join(lines)
