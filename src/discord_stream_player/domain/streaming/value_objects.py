"""Value objects and shared state for the streaming bounded context."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from discord_stream_player.domain.shared.datetime_utils import utcnow
from discord_stream_player.domain.shared.types import (
    NonNegativeInt,
    Percent,
    UtcDatetimeField,
)


class ProgressSnapshot(BaseModel):
    """Latest known playback position of the active item.

    Replaced wholesale on every update, never mutated.
    """

    model_config = ConfigDict(frozen=True)

    current_time_seconds: NonNegativeInt = 0
    duration_seconds: NonNegativeInt = 0  # 0 means unknown or live
    percent: Percent = 0
    is_live: bool = False
    last_updated: UtcDatetimeField = Field(default_factory=utcnow)
    title: str = ""

    @classmethod
    def initial(cls, title: str, duration_seconds: int, is_live: bool) -> ProgressSnapshot:
        return cls(
            current_time_seconds=0,
            duration_seconds=duration_seconds,
            percent=0,
            is_live=is_live,
            title=title,
        )


class Destination(BaseModel):
    """Guild and voice channel the stream is sent to."""

    model_config = ConfigDict(frozen=True)

    group_id: NonNegativeInt = 0
    channel_id: NonNegativeInt = 0

    @property
    def is_set(self) -> bool:
        return self.group_id > 0 and self.channel_id > 0


class StreamStatus(BaseModel):
    """Process-wide playback status.

    Owned by the orchestrator; other components only read it.
    """

    connected: bool = False
    playing: bool = False
    manual_stop: bool = False
    destination: Destination = Field(default_factory=Destination)
    current_progress: ProgressSnapshot | None = None

    def reset(self) -> None:
        """Return every field to its idle default."""
        self.connected = False
        self.playing = False
        self.manual_stop = False
        self.destination = Destination()
        self.current_progress = None


class OrchestratorState(Enum):
    """Lifecycle states of the playback orchestrator.

    State transitions:
    - IDLE -> CONNECTING (play)
    - CONNECTING -> STREAMING | FAILING | STOPPING
    - STREAMING -> COMPLETING | SKIPPING | STOPPING | FAILING
    - COMPLETING / SKIPPING / FAILING -> CONNECTING (hand-off) | IDLE (teardown)
    - STOPPING -> IDLE
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETING = "completing"
    SKIPPING = "skipping"
    STOPPING = "stopping"
    FAILING = "failing"

    def can_transition_to(self, target: OrchestratorState) -> bool:
        """Check if transition to target state is valid."""
        after_session = {
            OrchestratorState.CONNECTING,
            OrchestratorState.IDLE,
            OrchestratorState.STOPPING,
            OrchestratorState.SKIPPING,
        }
        valid_transitions = {
            OrchestratorState.IDLE: {OrchestratorState.CONNECTING, OrchestratorState.STOPPING},
            OrchestratorState.CONNECTING: {
                OrchestratorState.STREAMING,
                OrchestratorState.FAILING,
                OrchestratorState.STOPPING,
                OrchestratorState.SKIPPING,
            },
            OrchestratorState.STREAMING: {
                OrchestratorState.COMPLETING,
                OrchestratorState.SKIPPING,
                OrchestratorState.STOPPING,
                OrchestratorState.FAILING,
            },
            OrchestratorState.COMPLETING: after_session,
            OrchestratorState.SKIPPING: after_session,
            OrchestratorState.FAILING: after_session,
            OrchestratorState.STOPPING: {OrchestratorState.IDLE},
        }
        return target in valid_transitions.get(self, set())
