"""Port interface for the external transcoding/streaming engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict

from discord_stream_player.domain.shared.types import NonNegativeInt, PositiveInt

if TYPE_CHECKING:
    from ...domain.streaming.session import CancellationToken


# ── Session events ──────────────────────────────────────────────────
# Every event carries the id of the session that produced it, so events
# of a cancelled session can be told apart from the current one.


class EngineEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: NonNegativeInt


class TelemetryLine(EngineEvent):
    """One line of engine progress output."""

    line: str


class EngineFailed(EngineEvent):
    """The engine reported an error; the session cannot continue."""

    message: str
    stdout: str | None = None
    stderr: str | None = None


class EngineExited(EngineEvent):
    """The engine process ended without reporting an error."""

    return_code: int | None = None


# ── Options and handles ─────────────────────────────────────────────


class VideoParams(BaseModel):
    """Source stream parameters discovered by probing."""

    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt
    fps: float | None = None
    bitrate: str | None = None


class StreamOptions(BaseModel):
    """Encoding options for one engine session."""

    model_config = ConfigDict(frozen=True)

    width: PositiveInt = 1280
    height: PositiveInt = 720
    fps: PositiveInt | None = 30
    bitrate_kbps: PositiveInt = 1000
    max_bitrate_kbps: PositiveInt = 2500
    hardware_acceleration: bool = False
    is_live: bool = False
    video_sink: str | None = None  # optional secondary video output (file or URL)

    def with_video_params(self, params: VideoParams | None) -> StreamOptions:
        """Prefer the source's own resolution and frame rate when known."""
        if params is None:
            return self
        update: dict[str, object] = {"width": params.width, "height": params.height}
        if params.fps:
            update["fps"] = max(1, round(params.fps))
        return self.model_copy(update=update)


class OutputHandle(Protocol):
    """Byte stream produced by the engine and consumed by the transport."""

    async def read(self, n: int = -1) -> bytes: ...

    async def readexactly(self, n: int) -> bytes: ...


@dataclass
class EngineSession:
    """Handles of one running engine session."""

    session_id: int
    events: AsyncIterator[EngineEvent]
    output: OutputHandle
    input_ref: str = ""
    extra: dict[str, object] = field(default_factory=dict)


class StreamingEngine(ABC):
    """Interface for the process that transcodes a source into the destination stream."""

    @abstractmethod
    async def probe_duration(self, input_ref: str) -> int:
        """Return the source duration in whole seconds, 0 when unknown or live."""
        ...

    @abstractmethod
    async def probe_video_params(self, input_ref: str) -> VideoParams | None:
        """Return the source's video parameters, or None when they cannot be read."""
        ...

    @abstractmethod
    async def start_session(
        self,
        input_ref: str,
        options: StreamOptions,
        cancel_token: CancellationToken,
        *,
        session_id: int,
    ) -> EngineSession:
        """Start streaming ``input_ref``. Raises ``EngineStartError`` on failure."""
        ...

    @abstractmethod
    async def stop_session(self, session: EngineSession) -> None:
        """Ask a running session to halt. Best effort, never raises."""
        ...
