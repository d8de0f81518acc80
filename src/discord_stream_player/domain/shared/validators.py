"""Shared validators for user-submitted media sources.

This module provides reusable checks for the raw source references users
submit: URLs, local file paths and free-text search terms.
"""

from __future__ import annotations

import os
import re
from typing import Final

from discord_stream_player.domain.shared.messages import ErrorMessages

URL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)


def is_url(value: str) -> bool:
    """Check whether a source reference looks like a web URL.

    Args:
        value: The raw source reference.

    Returns:
        True for ``http(s)://`` and ``www.`` references.
    """
    return bool(URL_PATTERN.match(value.strip()))


def is_local_file(value: str) -> bool:
    """Check whether a source reference names an existing regular file.

    Args:
        value: The raw source reference.

    Returns:
        True if the path exists and is a file. Paths the OS rejects
        (too long, embedded NUL) count as missing.
    """
    try:
        return os.path.isfile(value)
    except (OSError, ValueError):
        return False


def validate_source_ref(value: str) -> str:
    """Validate and normalise a raw source reference.

    Args:
        value: The raw source reference.

    Returns:
        The reference with surrounding whitespace removed.

    Raises:
        ValueError: If the reference is empty or whitespace-only.
    """
    stripped = value.strip() if isinstance(value, str) else ""
    if not stripped:
        raise ValueError(ErrorMessages.EMPTY_SOURCE_REF)
    return stripped
