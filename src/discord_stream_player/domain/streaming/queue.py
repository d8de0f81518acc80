"""Ordered playback queue with a current-position cursor."""

from __future__ import annotations

import itertools
from collections.abc import Iterator

from discord_stream_player.domain.streaming.entities import QueueItem, SourceKind


class PlaybackQueue:
    """FIFO playlist of ``QueueItem`` with a nullable cursor.

    Invariants:
    - insertion order is play order, only ``skip``/``remove``/``clear`` alter it
    - ``current_index`` is ``None`` or a valid index into the items
    - item ids are monotonic and never reused for the lifetime of the instance
    """

    def __init__(self) -> None:
        self._items: list[QueueItem] = []
        self._current_index: int | None = None
        self._playing = False
        self._ids = itertools.count(1)

    @property
    def current_index(self) -> int | None:
        return self._current_index

    @property
    def playing(self) -> bool:
        return self._playing

    def enqueue(
        self,
        *,
        source_ref: str,
        title: str,
        submitter: str,
        source_kind: SourceKind = SourceKind.URL,
        is_live: bool = False,
    ) -> QueueItem:
        """Append a new item. Never starts playback."""
        item = QueueItem(
            id=next(self._ids),
            source_ref=source_ref,
            title=title,
            submitter=submitter,
            source_kind=source_kind,
            is_live=is_live,
        )
        self._items.append(item)
        return item

    def next(self) -> QueueItem | None:
        """Peek the item that a play request would start."""
        if not self._items:
            return None
        if self._current_index is not None and self._playing:
            return self._items[self._current_index]
        return self._items[0]

    def current(self) -> QueueItem | None:
        if self._current_index is None:
            return None
        return self._items[self._current_index]

    def skip(self) -> QueueItem | None:
        """Drop the current slot and move the cursor onto the next remaining item.

        Returns the new current item, or ``None`` when nothing remains after it.
        """
        if not self._items:
            self._current_index = None
            return None

        index = self._current_index if self._current_index is not None else 0
        del self._items[index]

        if index >= len(self._items):
            self._current_index = None
            return None

        self._current_index = index
        return self._items[index]

    def remove(self, item_id: int) -> QueueItem | None:
        """Delete an item by id. Unknown ids are ignored.

        The cursor is not advanced past a removed current item; it keeps its
        position, which now holds the following item (or becomes ``None``).
        """
        for index, item in enumerate(self._items):
            if item.id != item_id:
                continue

            del self._items[index]
            if self._current_index is not None:
                if index < self._current_index:
                    self._current_index -= 1
                if self._current_index >= len(self._items):
                    self._current_index = None
            return item
        return None

    def clear(self) -> int:
        """Remove every item and return how many were removed."""
        count = len(self._items)
        self._items.clear()
        self._current_index = None
        return count

    def set_playing(self, playing: bool) -> None:
        self._playing = playing
        if playing and self._current_index is None and self._items:
            self._current_index = 0

    def reset_cursor(self) -> None:
        self._current_index = None

    def is_empty(self) -> bool:
        return not self._items

    def length(self) -> int:
        return len(self._items)

    def contains(self, item_id: int) -> bool:
        return any(item.id == item_id for item in self._items)

    def items(self) -> list[QueueItem]:
        """Snapshot of the queue in play order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(list(self._items))
