"""Parsing of ffmpeg progress telemetry.

ffmpeg reports progress as ``key=value`` tokens, either packed into one stats
line (``frame=  120 fps= 30 q=28.0 size=  1024kB time=00:00:04.00 ...``) or one
token per line when run with ``-progress``. Parsing is split into three pure
steps so each can be tested on its own:

1. ``tokenize`` turns a line into a raw ``{key: value}`` map.
2. ``parse_line`` converts the known keys into a sparse ``TelemetrySample``.
3. ``process_progress`` derives a ``ProgressSnapshot`` from a sample.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any, Final, Literal

from pydantic import BaseModel, ConfigDict

from discord_stream_player.domain.streaming.value_objects import ProgressSnapshot

MICROSECONDS_PER_SECOND: Final[int] = 1_000_000
OUT_TIME_US_DIVISOR: Final[int] = 1000


class TelemetrySample(BaseModel):
    """Typed fields found on one telemetry line. Absent keys stay ``None``."""

    model_config = ConfigDict(frozen=True)

    frame: int | None = None
    fps: float | None = None
    stream_0_0_q: float | None = None
    stream_0_1_q: float | None = None
    q: float | None = None
    size: str | None = None
    time: str | None = None
    bitrate: str | None = None
    speed: float | None = None
    out_time_ms: int | None = None
    out_time_us: int | None = None
    progress: Literal["continue", "end"] | None = None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())

    @property
    def is_final(self) -> bool:
        return self.progress == "end"


def tokenize(line: str) -> dict[str, str]:
    """Split a line into ``key=value`` pairs.

    ffmpeg pads values (``fps= 30``), so a bare ``key=`` takes the next word.
    Words without ``=`` are ignored; a repeated key keeps its last value.
    """
    fields: dict[str, str] = {}
    pending_key: str | None = None

    for word in line.split():
        if pending_key is not None:
            if "=" not in word:
                fields[pending_key] = word
                pending_key = None
                continue
            pending_key = None

        key, sep, value = word.partition("=")
        if not sep or not key:
            continue
        if value:
            fields[key] = value
        else:
            pending_key = key

    return fields


def _to_int(value: str) -> int | None:
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number >= 0 else None


def _to_float(value: str) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _to_speed(value: str) -> float | None:
    if not value.endswith("x"):
        return None
    return _to_float(value[:-1])


def _to_clock(value: str) -> str | None:
    return value if parse_clock(value) is not None else None


def _to_progress(value: str) -> str | None:
    return value if value in ("continue", "end") else None


def _to_token(value: str) -> str | None:
    return None if value == "N/A" else value


_CONVERTERS: Final[dict[str, Callable[[str], Any]]] = {
    "frame": _to_int,
    "fps": _to_float,
    "stream_0_0_q": _to_float,
    "stream_0_1_q": _to_float,
    "q": _to_float,
    "size": _to_token,
    "time": _to_clock,
    "bitrate": _to_token,
    "speed": _to_speed,
    "out_time_ms": _to_int,
    "out_time_us": _to_int,
    "progress": _to_progress,
}


def parse_clock(value: str) -> float | None:
    """Parse ``H:MM:SS.frac`` into seconds. Negative or malformed clocks give ``None``."""
    parts = value.split(":")
    if len(parts) != 3:
        return None

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = float(parts[2])
    except ValueError:
        return None

    if hours < 0 or minutes < 0 or seconds < 0 or not math.isfinite(seconds):
        return None
    return hours * 3600 + minutes * 60 + seconds


def parse_line(line: str) -> TelemetrySample | None:
    """Parse one line of engine output into a sparse sample, or ``None``."""
    values: dict[str, Any] = {}
    for key, raw in tokenize(line).items():
        converter = _CONVERTERS.get(key)
        if converter is None:
            continue
        converted = converter(raw)
        if converted is not None:
            values[key] = converted

    if not values:
        return None
    return TelemetrySample(**values)


def resolve_elapsed_seconds(sample: TelemetrySample) -> float | None:
    """Elapsed playback time of a sample, most precise field first.

    Priority: ``out_time_ms`` (microseconds), then ``out_time_us`` normalised
    by 1000, then the human readable ``time`` clock. ``None`` when the sample
    carries no time at all.
    """
    if sample.out_time_ms is not None:
        return sample.out_time_ms / MICROSECONDS_PER_SECOND
    if sample.out_time_us is not None:
        return sample.out_time_us / OUT_TIME_US_DIVISOR / MICROSECONDS_PER_SECOND
    if sample.time is not None:
        return parse_clock(sample.time)
    return None


def compute_percent(elapsed_seconds: float, duration_seconds: float, is_live: bool) -> int:
    """Whole percentage of ``duration_seconds`` played, clamped to [0, 100]."""
    if is_live or duration_seconds <= 0:
        return 0
    ratio = min(elapsed_seconds / duration_seconds * 100, 100)
    # Half-up rounding, not banker's rounding.
    return max(0, int(math.floor(ratio + 0.5)))


def process_progress(
    sample: TelemetrySample,
    *,
    duration_seconds: int,
    is_live: bool,
    title: str = "",
) -> ProgressSnapshot | None:
    """Turn a sample into a progress snapshot.

    Samples without a time, or whose time is exactly zero, are dropped so a
    stream never flickers to 0% before the engine reports a real position.
    """
    elapsed = resolve_elapsed_seconds(sample)
    if not elapsed:
        return None

    current_time = int(elapsed)
    return ProgressSnapshot(
        current_time_seconds=current_time,
        duration_seconds=duration_seconds,
        percent=compute_percent(current_time, duration_seconds, is_live),
        is_live=is_live,
        title=title,
    )


class ProgressParser:
    """Telemetry parser bound to one stream's duration, live flag and title."""

    def __init__(self, duration_seconds: int = 0, is_live: bool = False, title: str = "") -> None:
        self.duration_seconds = duration_seconds
        self.is_live = is_live
        self.title = title

    def parse_line(self, line: str) -> TelemetrySample | None:
        return parse_line(line)

    def process_progress(self, sample: TelemetrySample) -> ProgressSnapshot | None:
        return process_progress(
            sample,
            duration_seconds=self.duration_seconds,
            is_live=self.is_live,
            title=self.title,
        )

    def feed(self, line: str) -> ProgressSnapshot | None:
        """Parse a line and return a snapshot when it moves the position."""
        sample = self.parse_line(line)
        if sample is None:
            return None
        return self.process_progress(sample)
