"""Date/time helpers.

- Always operate on timezone-aware UTC datetimes.
- Elapsed/duration values shown to users go through `format_clock`.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Preferred replacement for `datetime.now(UTC)`.

    Returns a timezone-aware datetime in UTC.
    """
    return datetime.now(UTC)


def format_clock(seconds: int | float) -> str:
    """Render seconds as ``H:MM:SS`` from one hour upwards, else ``M:SS``."""
    total_seconds = max(0, int(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
