import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from discord_stream_player.application.interfaces.channel_notifier import ChannelNotifier
from discord_stream_player.application.interfaces.destination_transport import (
    DestinationTransport,
)
from discord_stream_player.application.interfaces.source_resolver import (
    ResolvedSource,
    SourceResolver,
)
from discord_stream_player.application.interfaces.streaming_engine import (
    EngineExited,
    EngineFailed,
    EngineSession,
    StreamingEngine,
    TelemetryLine,
)
from discord_stream_player.domain.shared.validators import is_url
from discord_stream_player.domain.streaming.entities import SourceKind

# ============================================================================
# Engine / Transport / Notifier Fakes
# ============================================================================


class FakeOutput:
    """Engine output handle whose end is controlled by the test."""

    def __init__(self) -> None:
        self.exhausted = asyncio.Event()

    async def read(self, n: int = -1) -> bytes:
        await self.exhausted.wait()
        return b""

    async def readexactly(self, n: int) -> bytes:
        await self.exhausted.wait()
        raise asyncio.IncompleteReadError(b"", n)


class FakeRun:
    """One fake engine session: the test pushes telemetry, errors or the end."""

    def __init__(self, session_id: int, input_ref: str) -> None:
        self.session_id = session_id
        self.input_ref = input_ref
        self.output = FakeOutput()
        self.stopped = False
        self._events: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def events(self):
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    def emit(self, line: str) -> None:
        self._events.put_nowait(TelemetryLine(session_id=self.session_id, line=line))

    def emit_foreign(self, session_id: int, line: str) -> None:
        self._events.put_nowait(TelemetryLine(session_id=session_id, line=line))

    def finish(self) -> None:
        """Natural end of stream."""
        if self._closed:
            return
        self._closed = True
        self._events.put_nowait(EngineExited(session_id=self.session_id, return_code=0))
        self._events.put_nowait(None)
        self.output.exhausted.set()

    def fail(self, message: str = "boom") -> None:
        """Runtime error reported by the engine."""
        if self._closed:
            return
        self._closed = True
        self._events.put_nowait(EngineFailed(session_id=self.session_id, message=message))
        self._events.put_nowait(None)
        self.output.exhausted.set()

    def kill(self) -> None:
        self.stopped = True
        if self._closed:
            return
        self._closed = True
        self._events.put_nowait(EngineExited(session_id=self.session_id, return_code=-9))
        self._events.put_nowait(None)
        self.output.exhausted.set()


class FakeEngine(StreamingEngine):
    def __init__(self, duration: int = 50) -> None:
        self.duration = duration
        self.runs: list[FakeRun] = []
        self.start_error: Exception | None = None
        self.started_options = []

    async def probe_duration(self, input_ref: str) -> int:
        return self.duration

    async def probe_video_params(self, input_ref: str):
        return None

    async def start_session(self, input_ref, options, cancel_token, *, session_id):
        if self.start_error is not None:
            raise self.start_error
        run = FakeRun(session_id, input_ref)
        self.runs.append(run)
        self.started_options.append(options)
        return EngineSession(
            session_id=session_id,
            events=run.events(),
            output=run.output,
            input_ref=input_ref,
        )

    async def stop_session(self, session: EngineSession) -> None:
        for run in self.runs:
            if run.session_id == session.session_id:
                run.kill()


class FakeTransport(DestinationTransport):
    def __init__(self) -> None:
        self.connected = False
        self.connect_result = True
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.activity_texts: list[str | None] = []
        self.stream_error: Exception | None = None

    async def connect(self, group_id: int, channel_id: int) -> bool:
        self.connect_calls += 1
        if self.connect_result:
            self.connected = True
        return self.connect_result

    async def disconnect(self) -> bool:
        self.disconnect_calls += 1
        self.connected = False
        return True

    def is_connected(self) -> bool:
        return self.connected

    async def set_activity_text(self, text: str | None) -> None:
        self.activity_texts.append(text)

    async def stream(self, output, cancel_token) -> None:
        if self.stream_error is not None:
            raise self.stream_error
        waiters = {
            asyncio.ensure_future(output.exhausted.wait()),
            asyncio.ensure_future(cancel_token.wait()),
        }
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()


class FakeNotifier(ChannelNotifier):
    def __init__(self) -> None:
        self.infos: list[tuple[str, str]] = []
        self.successes: list[str] = []
        self.errors: list[str] = []
        self.playing: list[str] = []
        self.finished = 0
        self.displays: list[str] = []
        self.edits: list[str] = []
        self.deleted = 0

    async def send_info(self, title: str, description: str) -> None:
        self.infos.append((title, description))

    async def send_success(self, description: str) -> None:
        self.successes.append(description)

    async def send_error(self, description: str) -> None:
        self.errors.append(description)

    async def send_playing(self, title: str) -> None:
        self.playing.append(title)

    async def send_finished(self) -> None:
        self.finished += 1

    async def create_display(self, text: str):
        self.displays.append(text)
        return len(self.displays)

    async def edit_display(self, handle, text: str) -> None:
        self.edits.append(text)

    async def delete_display(self, handle) -> None:
        self.deleted += 1


class FakeResolver(SourceResolver):
    """Resolves every URL to itself; ``unresolvable`` refs resolve to None."""

    def __init__(self) -> None:
        self.unresolvable: set[str] = set()
        self.live: set[str] = set()
        self.staged: set[str] = set()
        self.download_error: Exception | None = None
        self.downloads: list[str] = []
        self.download_dir: Path | None = None

    async def resolve(self, raw_source: str) -> ResolvedSource | None:
        if raw_source in self.unresolvable:
            return None
        return ResolvedSource(
            kind=SourceKind.URL if is_url(raw_source) else SourceKind.SEARCH_RESULT,
            playable_url=f"{raw_source}#media",
            is_live=raw_source in self.live,
            title=raw_source.rsplit("/", 1)[-1] or raw_source,
            requires_staging=raw_source in self.staged,
        )

    async def download(self, raw_source: str) -> Path:
        self.downloads.append(raw_source)
        if self.download_error is not None:
            raise self.download_error
        assert self.download_dir is not None
        path = self.download_dir / f"{len(self.downloads)}.mp4"
        path.write_bytes(b"video")
        return path

    def is_url(self, raw_source: str) -> bool:
        return is_url(raw_source)


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset the global event bus and settings cache around each test."""
    from discord_stream_player.config.settings import clear_settings_cache
    from discord_stream_player.domain.shared.events import reset_event_bus

    reset_event_bus()
    clear_settings_cache()
    yield
    reset_event_bus()
    clear_settings_cache()


@pytest.fixture
def wait_until():
    """Poll a predicate on the running loop until it holds."""
    return _wait_until


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def fake_resolver(tmp_path):
    resolver = FakeResolver()
    resolver.download_dir = tmp_path
    return resolver


@pytest.fixture
def playback_queue():
    from discord_stream_player.domain.streaming.queue import PlaybackQueue

    return PlaybackQueue()


@pytest.fixture
def stream_status():
    from discord_stream_player.domain.streaming.value_objects import StreamStatus

    return StreamStatus()


@pytest_asyncio.fixture
async def orchestrator(
    playback_queue, stream_status, fake_engine, fake_transport, fake_notifier, fake_resolver
):
    """Orchestrator wired to fakes with no settle or hand-off delays."""
    from discord_stream_player.application.services.playback_orchestrator import (
        PlaybackOrchestrator,
    )
    from discord_stream_player.application.services.progress_tracker import ProgressTracker
    from discord_stream_player.domain.shared.events import EventBus
    from discord_stream_player.domain.streaming.value_objects import Destination

    progress = ProgressTracker(stream_status, fake_notifier, fake_transport, interval_seconds=10.0)
    orch = PlaybackOrchestrator(
        queue=playback_queue,
        status=stream_status,
        engine=fake_engine,
        transport=fake_transport,
        resolver=fake_resolver,
        notifier=fake_notifier,
        progress=progress,
        destination=Destination(group_id=111, channel_id=222),
        connect_settle_seconds=0.0,
        handoff_delay_seconds=0.0,
        stop_grace_seconds=0.5,
        event_bus=EventBus(),
    )
    yield orch
    await orch.stop()
