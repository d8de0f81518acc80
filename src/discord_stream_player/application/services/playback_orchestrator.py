"""Playback Orchestrator - drives queue items through the streaming engine.

The orchestrator is the only owner of ``StreamStatus`` and the active
``PlaybackSession``. Concurrency relies on three rules instead of locks:

- single flight: ``status.playing`` is checked and set before the first await
- the ``SkipGuard`` rejects overlapping hand-offs
- full teardown is idempotent
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ...domain.shared.events import (
    ItemQueued,
    PlaybackStopped,
    QueueExhausted,
    StreamFailed,
    StreamFinished,
    StreamSkipped,
    StreamStarted,
    get_event_bus,
)
from ...domain.shared.exceptions import (
    DownloadFailureError,
    EngineRuntimeError,
    SourceUnresolvableError,
    StreamingError,
    TransportConnectError,
    ValidationError,
)
from ...domain.shared.messages import DiscordUIMessages, ErrorMessages, LogTemplates
from ...domain.shared.validators import is_local_file
from ...domain.streaming.entities import QueueItem, SourceKind
from ...domain.streaming.session import PlaybackSession, SkipDecision, SkipGuard
from ...domain.streaming.telemetry import ProgressParser
from ...domain.streaming.value_objects import Destination, OrchestratorState
from ..interfaces.streaming_engine import (
    EngineFailed,
    EngineSession,
    StreamOptions,
    TelemetryLine,
)
from .orchestrator_models import (
    EnqueueResult,
    PlayResult,
    PlayStatus,
    SkipResult,
    SkipStatus,
    StopResult,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ...domain.shared.events import DomainEvent, EventBus
    from ...domain.streaming.queue import PlaybackQueue
    from ...domain.streaming.value_objects import StreamStatus
    from ..interfaces.channel_notifier import ChannelNotifier
    from ..interfaces.destination_transport import DestinationTransport
    from ..interfaces.source_resolver import ResolvedSource, SourceResolver
    from ..interfaces.streaming_engine import StreamingEngine
    from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

_MAX_TITLE_LENGTH = 500


@dataclass(frozen=True)
class PreparedSource:
    input_ref: str
    is_live: bool


class PlaybackOrchestrator:
    """State machine for the single active stream.

    IDLE -> CONNECTING -> STREAMING -> COMPLETING | SKIPPING | STOPPING | FAILING,
    then either a hand-off to the next item (CONNECTING) or a full teardown (IDLE).
    """

    def __init__(
        self,
        *,
        queue: PlaybackQueue,
        status: StreamStatus,
        engine: StreamingEngine,
        transport: DestinationTransport,
        resolver: SourceResolver,
        notifier: ChannelNotifier,
        progress: ProgressTracker,
        destination: Destination | None = None,
        stream_options: StreamOptions | None = None,
        respect_video_params: bool = False,
        connect_settle_seconds: float = 2.0,
        handoff_delay_seconds: float = 1.0,
        stall_timeout_seconds: float = 0.0,
        stop_grace_seconds: float = 2.0,
        post_progress_message: bool = True,
        event_bus: EventBus | None = None,
    ) -> None:
        self._queue = queue
        self._status = status
        self._engine = engine
        self._transport = transport
        self._resolver = resolver
        self._notifier = notifier
        self._progress = progress
        self._destination = destination or Destination()
        self._stream_options = stream_options or StreamOptions()
        self._respect_video_params = respect_video_params
        self._connect_settle = connect_settle_seconds
        self._handoff_delay = handoff_delay_seconds
        self._stall_timeout = stall_timeout_seconds
        self._stop_grace = stop_grace_seconds
        self._post_progress_message = post_progress_message
        self._event_bus = event_bus or get_event_bus()

        self._state = OrchestratorState.IDLE
        self._session: PlaybackSession | None = None
        self._session_tasks: dict[int, asyncio.Task[None]] = {}
        self._skip_guard = SkipGuard()
        self._failed_sources: set[str] = set()

    # ── Read-only views ──────────────────────────────────────────────

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def status(self) -> StreamStatus:
        return self._status

    @property
    def queue(self) -> PlaybackQueue:
        return self._queue

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    @property
    def current_item(self) -> QueueItem | None:
        return self._session.item if self._session is not None else None

    @property
    def failed_sources(self) -> frozenset[str]:
        return frozenset(self._failed_sources)

    @property
    def destination(self) -> Destination:
        return self._destination

    def set_destination(self, group_id: int, channel_id: int) -> None:
        """Change where the next connection goes. The active stream is unaffected."""
        self._destination = Destination(group_id=group_id, channel_id=channel_id)

    # ── Commands ─────────────────────────────────────────────────────

    async def enqueue(
        self, raw_source: str, submitter: str, *, title: str | None = None
    ) -> EnqueueResult:
        """Resolve metadata for ``raw_source`` and append it to the queue.

        Unresolvable input is still queued under its raw reference; it fails
        (and is skipped) when its turn comes. Never starts playback.
        """
        source_ref = raw_source.strip()
        if not source_ref:
            raise ValidationError(ErrorMessages.EMPTY_SOURCE_REF, field="raw_source")

        resolved = await self._safe_resolve(source_ref)
        if resolved is not None:
            kind = resolved.kind
            is_live = resolved.is_live
            title = title or resolved.title
        else:
            kind = SourceKind.URL if self._resolver.is_url(source_ref) else SourceKind.FILE
            is_live = False

        # An explicit re-submission gets a fresh chance.
        self._failed_sources.discard(source_ref)

        item = self._queue.enqueue(
            source_ref=source_ref,
            title=(title or source_ref)[:_MAX_TITLE_LENGTH],
            submitter=submitter,
            source_kind=kind,
            is_live=is_live,
        )
        queue_length = len(self._queue)
        logger.info(LogTemplates.QUEUE_ENQUEUED, item.id, item.title, queue_length)
        await self._publish(
            ItemQueued(
                item_id=item.id,
                title=item.title,
                submitter=submitter,
                queue_length=queue_length,
            )
        )
        return EnqueueResult(
            item=item,
            position=queue_length,
            queue_length=queue_length,
            should_start=not self._status.playing,
        )

    async def play(self) -> PlayResult:
        """Start streaming the next queued item unless a stream is already active."""
        if self._status.playing:
            logger.info(LogTemplates.PLAY_ALREADY_PLAYING)
            return PlayResult(
                status=PlayStatus.ALREADY_PLAYING,
                item=self.current_item,
                message=DiscordUIMessages.STATE_ALREADY_PLAYING,
            )

        item = self._queue.next()
        if item is None:
            logger.info(LogTemplates.PLAY_QUEUE_EMPTY)
            return PlayResult(
                status=PlayStatus.QUEUE_EMPTY, message=DiscordUIMessages.STATE_QUEUE_EMPTY
            )

        # Claimed before any await: a second play() sees playing=True.
        self._status.playing = True
        self._status.manual_stop = False
        self._queue.set_playing(True)
        return await self._start_item(item)

    async def skip(self) -> SkipResult:
        """Cancel the active session and hand off to the next item.

        Rejected while another hand-off is in flight. A skip that empties the
        queue only needs to stop, so it may overlap with another such skip.
        """
        session = self._session
        if not self._status.playing or session is None:
            return SkipResult(status=SkipStatus.NOTHING_PLAYING)

        # The session already ended and the next item is being picked.
        if self._state in (OrchestratorState.COMPLETING, OrchestratorState.FAILING):
            logger.info(LogTemplates.SKIP_IGNORED, self._state.value)
            return SkipResult(status=SkipStatus.ADVANCING, skipped=session.item)
        if self._state is OrchestratorState.STOPPING:
            logger.info(LogTemplates.SKIP_IGNORED, self._state.value)
            return SkipResult(status=SkipStatus.NOTHING_PLAYING)

        decision = self._skip_guard.try_acquire(len(self._queue))
        if decision is SkipDecision.REJECTED:
            logger.info(LogTemplates.SKIP_REJECTED)
            return SkipResult(status=SkipStatus.REJECTED, skipped=session.item)

        try:
            # Flag and cursor change happen synchronously, before any await.
            session.request_stop()
            self._status.manual_stop = True
            skipped = session.item
            self._queue.skip()
            self._transition(OrchestratorState.SKIPPING)

            await self._progress.stop()
            await self._halt_session(session)

            next_item = await self._next_playable()
            logger.info(
                LogTemplates.SKIP_ACCEPTED,
                decision.value,
                next_item.title if next_item else None,
            )
            await self._publish(
                StreamSkipped(
                    item_id=skipped.id,
                    title=skipped.title,
                    next_item_id=next_item.id if next_item else None,
                )
            )

            if next_item is None:
                if decision is SkipDecision.ACCEPTED:
                    await self._notify(
                        "info",
                        self._notifier.send_info,
                        DiscordUIMessages.TITLE_SKIP,
                        DiscordUIMessages.STATE_NO_MORE_ITEMS,
                    )
                    await self._publish(
                        QueueExhausted(last_item_id=skipped.id, last_title=skipped.title)
                    )
                await self._teardown()
                return SkipResult(status=SkipStatus.EXHAUSTED, skipped=skipped)

            await self._notify(
                "info",
                self._notifier.send_info,
                DiscordUIMessages.TITLE_SKIP,
                DiscordUIMessages.ACTION_SKIPPING.format(
                    current=skipped.display_title, next=next_item.display_title
                ),
            )
            self._status.manual_stop = False
            await self._start_item(next_item)
            return SkipResult(status=SkipStatus.SKIPPED, skipped=skipped, next_item=next_item)
        finally:
            self._skip_guard.release(decision)

    async def stop(self) -> StopResult:
        """Clear the queue and tear everything down, whatever the session state."""
        was_playing = self._status.playing
        session = self._session
        if session is not None:
            session.request_stop()
        self._status.manual_stop = True

        cleared = self._queue.clear()
        logger.info(LogTemplates.STOP_REQUESTED, cleared)
        if was_playing or session is not None:
            self._transition(OrchestratorState.STOPPING)

        await self._publish(PlaybackStopped(items_cleared=cleared))
        await self._teardown()
        return StopResult(items_cleared=cleared, was_playing=was_playing)

    async def shutdown(self) -> None:
        await self.stop()

    # ── Session lifecycle ────────────────────────────────────────────

    async def _start_item(self, item: QueueItem) -> PlayResult:
        session = PlaybackSession(item)
        self._session = session
        self._transition(OrchestratorState.CONNECTING)

        try:
            await self._ensure_connected()
        except TransportConnectError as exc:
            if session.is_cancelled:
                return await self._abandon(session)
            await self._handle_connect_failure(session, exc)
            return PlayResult(status=PlayStatus.CONNECT_FAILED, item=item, message=exc.message)

        if session.is_cancelled:
            return await self._abandon(session)

        try:
            prepared = await self._prepare_source(session)
        except StreamingError as exc:
            if session.is_cancelled:
                return await self._abandon(session)
            session.fail(exc)
            await self._fail_and_advance(session)
            return PlayResult(status=PlayStatus.ITEM_FAILED, item=item, message=exc.message)

        if session.is_cancelled:
            return await self._abandon(session)

        task = asyncio.create_task(self._run_session(session, prepared))
        self._session_tasks[session.session_id] = task
        task.add_done_callback(lambda _t: self._session_tasks.pop(session.session_id, None))
        return PlayResult(status=PlayStatus.STARTED, item=item)

    async def _abandon(self, session: PlaybackSession) -> PlayResult:
        """A skip or stop overtook this session before it started streaming."""
        self._remove_temp_file(session)
        logger.info(LogTemplates.SESSION_CANCELLED, session.session_id, session.item.title)
        if self._session is None and not self._status.playing and self._transport.is_connected():
            # Connect finished after a teardown already ran.
            await self._safe_disconnect()
        return PlayResult(status=PlayStatus.CANCELLED, item=session.item)

    async def _run_session(self, session: PlaybackSession, prepared: PreparedSource) -> None:
        item = session.item
        try:
            await self._stream_session(session, prepared)
        except asyncio.CancelledError:
            session.cancel_token.cancel()
            raise
        except StreamingError as exc:
            session.fail(exc)
        except Exception as exc:
            logger.exception(LogTemplates.SESSION_FAILED, session.session_id, item.title, exc)
            session.fail(EngineRuntimeError(str(exc), source=item.source_ref))

        await self._finish_session(session)

    async def _stream_session(self, session: PlaybackSession, prepared: PreparedSource) -> None:
        item = session.item
        input_ref = prepared.input_ref

        duration = await self._engine.probe_duration(input_ref)
        is_live = prepared.is_live or duration <= 0
        options = self._stream_options.model_copy(update={"is_live": is_live})
        if self._respect_video_params and not is_live:
            options = options.with_video_params(await self._engine.probe_video_params(input_ref))

        if session.is_cancelled:
            return

        handle = await self._engine.start_session(
            input_ref, options, session.cancel_token, session_id=session.session_id
        )
        session.engine_session = handle

        if session.is_cancelled:
            await self._engine.stop_session(handle)
            return

        self._transition(OrchestratorState.STREAMING)
        logger.info(LogTemplates.SESSION_STARTED, session.session_id, item.title, duration, is_live)
        await self._progress.start(
            session.session_id,
            item.display_title,
            duration,
            is_live,
            post_message=self._post_progress_message,
        )
        await self._notify("playing", self._notifier.send_playing, item.display_title)
        await self._publish(
            StreamStarted(
                session_id=session.session_id,
                item_id=item.id,
                title=item.title,
                duration_seconds=duration,
                is_live=is_live,
            )
        )

        parser = ProgressParser(duration, is_live, item.display_title)
        pump = asyncio.create_task(self._pump_events(session, handle, parser))
        try:
            await self._transport.stream(handle.output, session.cancel_token)
        except Exception as exc:
            if not session.is_cancelled:
                logger.warning(LogTemplates.VOICE_STREAM_ERROR, exc)
                session.fail(EngineRuntimeError(str(exc), source=item.source_ref))

        if session.is_cancelled:
            await self._engine.stop_session(handle)

        done, _ = await asyncio.wait({pump}, timeout=self._stop_grace)
        if not done:
            await self._engine.stop_session(handle)
            pump.cancel()
            await asyncio.wait({pump})

    async def _pump_events(
        self, session: PlaybackSession, handle: EngineSession, parser: ProgressParser
    ) -> None:
        """Consume the session's event channel in arrival order."""
        events = aiter(handle.events)
        while True:
            try:
                if self._stall_timeout > 0:
                    event = await asyncio.wait_for(anext(events), self._stall_timeout)
                else:
                    event = await anext(events)
            except StopAsyncIteration:
                return
            except TimeoutError:
                if not session.is_cancelled:
                    logger.warning(
                        LogTemplates.SESSION_STALLED, session.session_id, self._stall_timeout
                    )
                    session.fail(
                        EngineRuntimeError(
                            ErrorMessages.ENGINE_STALLED.format(seconds=self._stall_timeout),
                            source=session.item.source_ref,
                        )
                    )
                return

            if event.session_id != session.session_id:
                logger.debug(
                    LogTemplates.SESSION_STALE_EVENT, event.session_id, session.session_id
                )
                continue

            if isinstance(event, TelemetryLine):
                if session.is_cancelled:
                    continue
                snapshot = parser.feed(event.line)
                if snapshot is not None:
                    await self._progress.update(session.session_id, snapshot)
            elif isinstance(event, EngineFailed):
                if not session.manual_stop:
                    session.fail(
                        EngineRuntimeError(
                            event.message,
                            source=session.item.source_ref,
                            stdout=event.stdout,
                            stderr=event.stderr,
                        )
                    )

    async def _finish_session(self, session: PlaybackSession) -> None:
        self._remove_temp_file(session)

        if self._session is not session:
            # Skip or stop already moved on.
            return
        if session.manual_stop:
            logger.info(LogTemplates.SESSION_CANCELLED, session.session_id, session.item.title)
            return
        if session.failed:
            await self._fail_and_advance(session)
            return

        self._transition(OrchestratorState.COMPLETING)
        logger.info(LogTemplates.SESSION_FINISHED, session.session_id, session.item.title)
        await self._notify("finished", self._notifier.send_finished)
        await self._publish(
            StreamFinished(
                session_id=session.session_id,
                item_id=session.item.id,
                title=session.item.title,
            )
        )
        self._queue.remove(session.item.id)
        await self._advance(session)

    async def _fail_and_advance(self, session: PlaybackSession) -> None:
        """Record the failure, notify once, and continue as on completion."""
        self._transition(OrchestratorState.FAILING)
        item = session.item
        error = session.error
        message = error.message if isinstance(error, StreamingError) else str(error)
        code = error.code if isinstance(error, StreamingError) else type(error).__name__

        self._failed_sources.add(item.source_ref)
        logger.warning(LogTemplates.SESSION_FAILED, session.session_id, item.title, message)
        logger.info(LogTemplates.SOURCE_MARKED_FAILED, item.source_ref)

        await self._notify(
            "error",
            self._notifier.send_error,
            DiscordUIMessages.ERROR_PLAYBACK_FAILED.format(title=item.display_title, error=message),
        )
        await self._publish(
            StreamFailed(
                item_id=item.id,
                title=item.title,
                source=item.source_ref,
                error_code=code,
                message=message,
            )
        )
        self._queue.remove(item.id)
        await self._advance(session)

    async def _advance(self, previous: PlaybackSession) -> None:
        """Hand off to the next playable item, or tear down when there is none."""
        await self._progress.stop()

        next_item = await self._next_playable()
        if next_item is None:
            logger.info(LogTemplates.QUEUE_EXHAUSTED, previous.item.title)
            await self._publish(
                QueueExhausted(last_item_id=previous.item.id, last_title=previous.item.title)
            )
            await self._teardown()
            return

        await asyncio.sleep(self._handoff_delay)
        if self._session is not previous or previous.manual_stop:
            return

        logger.info(LogTemplates.HANDOFF, previous.item.title, next_item.title)
        await self._start_item(next_item)

    async def _handle_connect_failure(
        self, session: PlaybackSession, error: TransportConnectError
    ) -> None:
        self._transition(OrchestratorState.FAILING)
        logger.error(LogTemplates.SESSION_FAILED, session.session_id, session.item.title, error)
        await self._notify("error", self._notifier.send_error, DiscordUIMessages.ERROR_CONNECT_FAILED)
        await self._publish(
            StreamFailed(
                item_id=session.item.id,
                title=session.item.title,
                source=session.item.source_ref,
                error_code=error.code,
                message=error.message,
            )
        )
        await self._teardown()

    async def _halt_session(self, session: PlaybackSession) -> None:
        """Fire the token, stop the engine and wait for the session task to wind down."""
        session.cancel_token.cancel()
        if session.engine_session is not None:
            await self._engine.stop_session(session.engine_session)

        task = self._session_tasks.get(session.session_id)
        if task is None or task is asyncio.current_task() or task.done():
            return
        done, _ = await asyncio.wait({task}, timeout=self._stop_grace)
        if not done:
            task.cancel()

    async def _teardown(self) -> None:
        """Full teardown back to IDLE. Safe to call when already idle."""
        session, self._session = self._session, None
        if session is not None:
            await self._halt_session(session)
            self._remove_temp_file(session)

        await self._progress.stop()
        if self._transport.is_connected():
            await self._safe_disconnect()
        try:
            await self._transport.set_activity_text(None)
        except Exception:
            logger.exception(LogTemplates.TEARDOWN_ERROR, "activity")

        self._status.reset()
        self._queue.set_playing(False)
        self._queue.reset_cursor()
        if self._state is not OrchestratorState.IDLE:
            logger.info(LogTemplates.TEARDOWN_FULL)
        self._transition(OrchestratorState.IDLE)

    # ── Helpers ──────────────────────────────────────────────────────

    async def _ensure_connected(self) -> None:
        destination = self._destination
        if not destination.is_set:
            raise TransportConnectError(
                destination.group_id, destination.channel_id, ErrorMessages.DESTINATION_NOT_SET
            )

        settle = 0.0
        if not self._transport.is_connected():
            connected = await self._transport.connect(destination.group_id, destination.channel_id)
            if not connected:
                raise TransportConnectError(destination.group_id, destination.channel_id)
            settle = self._connect_settle

        self._status.connected = True
        self._status.destination = destination
        # Always yields once, so concurrent commands observe CONNECTING.
        await asyncio.sleep(settle)

    async def _prepare_source(self, session: PlaybackSession) -> PreparedSource:
        """Turn the queued reference into something the engine can open."""
        item = session.item
        resolved = await self._safe_resolve(item.source_ref)
        is_live = item.is_live or (resolved is not None and resolved.is_live)

        if resolved is not None and resolved.requires_staging and not is_live:
            await self._notify(
                "info",
                self._notifier.send_info,
                DiscordUIMessages.TITLE_DOWNLOAD,
                DiscordUIMessages.ACTION_DOWNLOADING.format(title=item.display_title),
            )
            try:
                path = await self._resolver.download(item.source_ref)
            except DownloadFailureError:
                raise
            except Exception as exc:
                raise DownloadFailureError(item.source_ref, str(exc)) from exc
            session.temp_path = str(path)
            logger.info(LogTemplates.SOURCE_STAGED, item.source_ref, path)
            return PreparedSource(input_ref=str(path), is_live=False)

        if resolved is not None:
            return PreparedSource(input_ref=resolved.playable_url, is_live=is_live)

        if self._resolver.is_url(item.source_ref) or is_local_file(item.source_ref):
            return PreparedSource(input_ref=item.source_ref, is_live=is_live)

        raise SourceUnresolvableError(item.source_ref)

    async def _safe_resolve(self, source_ref: str) -> ResolvedSource | None:
        try:
            return await self._resolver.resolve(source_ref)
        except Exception:
            logger.exception(LogTemplates.SOURCE_RESOLVE_ERROR, source_ref)
            return None

    async def _next_playable(self) -> QueueItem | None:
        """Peek the next item, dropping entries whose source already failed."""
        while True:
            item = self._queue.next()
            if item is None or item.source_ref not in self._failed_sources:
                return item
            logger.info(LogTemplates.QUEUE_DROPPED_FAILED, item.id, item.source_ref)
            self._queue.remove(item.id)
            await self._notify(
                "info",
                self._notifier.send_info,
                DiscordUIMessages.TITLE_QUEUE,
                DiscordUIMessages.STATE_DROPPED_FAILED.format(title=item.title),
            )

    def _remove_temp_file(self, session: PlaybackSession) -> None:
        temp_path, session.temp_path = session.temp_path, None
        if not temp_path:
            return
        try:
            Path(temp_path).unlink(missing_ok=True)
            logger.debug(LogTemplates.TEMP_FILE_REMOVED, temp_path)
        except OSError as exc:
            logger.warning(LogTemplates.TEMP_FILE_REMOVE_FAILED, temp_path, exc)

    async def _safe_disconnect(self) -> None:
        try:
            await self._transport.disconnect()
        except Exception:
            logger.exception(LogTemplates.TEARDOWN_ERROR, "disconnect")

    async def _notify(
        self, kind: str, send: Callable[..., Awaitable[None]], *args: str
    ) -> None:
        try:
            await send(*args)
        except Exception:
            logger.exception(LogTemplates.NOTIFY_FAILED, kind)

    async def _publish(self, event: DomainEvent) -> None:
        await self._event_bus.publish(event)

    def _transition(self, target: OrchestratorState) -> None:
        current = self._state
        if current is target:
            return
        if current.can_transition_to(target):
            logger.debug(LogTemplates.STATE_TRANSITION, current.value, target.value)
        else:
            logger.warning(LogTemplates.STATE_TRANSITION_INVALID, current.value, target.value)
        self._state = target
