"""
Unit Tests for PlaybackOrchestrator

Tests for:
- Enqueue with metadata resolution and raw fallback
- Play entry point (single flight, empty queue)
- Natural completion hand-off without releasing the transport
- Skip (hand-off, last item, concurrent skips)
- Stop and idempotent teardown
- Failure handling (engine runtime/start errors, unresolvable sources,
  download failures, connection failures, stalls)
- Stale telemetry from a previous session
"""

import asyncio

import pytest

from discord_stream_player.application.services.orchestrator_models import (
    PlayStatus,
    SkipStatus,
)
from discord_stream_player.domain.shared.exceptions import (
    DownloadFailureError,
    EngineStartError,
    ValidationError,
)
from discord_stream_player.domain.shared.messages import DiscordUIMessages
from discord_stream_player.domain.streaming.entities import SourceKind
from discord_stream_player.domain.streaming.value_objects import OrchestratorState

URL_A = "https://example.com/a"
URL_B = "https://example.com/b"
URL_C = "https://example.com/c"


async def _start_streaming(orchestrator, fake_engine, wait_until, *sources):
    for source in sources:
        await orchestrator.enqueue(source, "tester")
    result = await orchestrator.play()
    assert result.status is PlayStatus.STARTED
    await wait_until(
        lambda: len(fake_engine.runs) == 1 and orchestrator.state is OrchestratorState.STREAMING
    )
    return result


# =============================================================================
# Enqueue Tests
# =============================================================================


class TestEnqueue:
    """Unit tests for PlaybackOrchestrator.enqueue."""

    @pytest.mark.asyncio
    async def test_enqueue_uses_resolved_title(self, orchestrator):
        """Should store the resolver's title and kind."""
        result = await orchestrator.enqueue(URL_A, "alice")

        assert result.item.title == "a"
        assert result.item.source_kind is SourceKind.URL
        assert result.item.submitter == "alice"
        assert result.position == 1
        assert result.should_start is True

    @pytest.mark.asyncio
    async def test_enqueue_falls_back_to_raw_reference(self, orchestrator, fake_resolver):
        """Should queue unresolvable input under its raw reference."""
        fake_resolver.unresolvable.add("https://example.com/broken")

        result = await orchestrator.enqueue("  https://example.com/broken  ", "bob")

        assert result.item.source_ref == "https://example.com/broken"
        assert result.item.title == "https://example.com/broken"
        assert result.item.source_kind is SourceKind.URL

    @pytest.mark.asyncio
    async def test_enqueue_explicit_title_wins(self, orchestrator):
        """Should prefer an explicit title over the resolved one."""
        result = await orchestrator.enqueue(URL_A, "alice", title="My Video")

        assert result.item.title == "My Video"

    @pytest.mark.asyncio
    async def test_enqueue_empty_raises(self, orchestrator):
        """Should reject empty or whitespace-only input."""
        with pytest.raises(ValidationError):
            await orchestrator.enqueue("   ", "alice")

    @pytest.mark.asyncio
    async def test_enqueue_never_starts_playback(self, orchestrator, fake_engine):
        """Should not start a session on its own."""
        await orchestrator.enqueue(URL_A, "alice")
        await asyncio.sleep(0)

        assert fake_engine.runs == []
        assert orchestrator.state is OrchestratorState.IDLE

    @pytest.mark.asyncio
    async def test_should_start_false_while_playing(self, orchestrator, fake_engine, wait_until):
        """Should report that playback is already running."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        result = await orchestrator.enqueue(URL_B, "bob")

        assert result.should_start is False
        assert result.position == 2


# =============================================================================
# Play Tests
# =============================================================================


class TestPlay:
    """Unit tests for PlaybackOrchestrator.play."""

    @pytest.mark.asyncio
    async def test_play_empty_queue(self, orchestrator, fake_transport):
        """Should report an empty queue without connecting."""
        result = await orchestrator.play()

        assert result.status is PlayStatus.QUEUE_EMPTY
        assert result.message == DiscordUIMessages.STATE_QUEUE_EMPTY
        assert fake_transport.connect_calls == 0

    @pytest.mark.asyncio
    async def test_play_starts_first_item(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, stream_status, wait_until
    ):
        """Should connect, start the engine and announce the item."""
        result = await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        assert result.item.source_ref == URL_A
        assert fake_engine.runs[0].input_ref == f"{URL_A}#media"
        assert fake_transport.connect_calls == 1
        assert stream_status.playing is True
        assert stream_status.connected is True
        await wait_until(lambda: fake_notifier.playing == ["a"])

    @pytest.mark.asyncio
    async def test_concurrent_play_starts_one_session(self, orchestrator, fake_engine, wait_until):
        """Should let only one of two simultaneous play requests start a session."""
        await orchestrator.enqueue(URL_A, "alice")

        first, second = await asyncio.gather(orchestrator.play(), orchestrator.play())

        statuses = sorted([first.status.value, second.status.value])
        assert statuses == sorted([PlayStatus.STARTED.value, PlayStatus.ALREADY_PLAYING.value])
        await wait_until(lambda: len(fake_engine.runs) == 1)
        await asyncio.sleep(0.02)
        assert len(fake_engine.runs) == 1

    @pytest.mark.asyncio
    async def test_zero_duration_is_treated_as_live(
        self, orchestrator, fake_engine, stream_status, wait_until
    ):
        """Should stream as live when the probe cannot find a duration."""
        fake_engine.duration = 0

        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        assert fake_engine.started_options[0].is_live is True
        assert stream_status.current_progress.is_live is True


# =============================================================================
# Natural Completion Tests
# =============================================================================


class TestNaturalCompletion:
    """Unit tests for completion and hand-off."""

    @pytest.mark.asyncio
    async def test_completion_hands_off_without_disconnect(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, wait_until
    ):
        """Should remove A and start B on the same connection."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        fake_engine.runs[0].finish()
        await wait_until(
            lambda: len(fake_engine.runs) == 2
            and orchestrator.state is OrchestratorState.STREAMING
        )

        assert [item.source_ref for item in orchestrator.queue.items()] == [URL_B]
        assert orchestrator.current_item.source_ref == URL_B
        assert fake_transport.connect_calls == 1
        assert fake_transport.disconnect_calls == 0
        assert None not in fake_transport.activity_texts
        assert fake_notifier.finished == 1
        await wait_until(lambda: fake_notifier.playing == ["a", "b"])

    @pytest.mark.asyncio
    async def test_skip_during_handoff_delay_reports_advancing(
        self, orchestrator, fake_engine, wait_until
    ):
        """Should tell the caller playback is already moving on, not that a skip runs."""
        orchestrator._handoff_delay = 0.2
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        fake_engine.runs[0].finish()
        await wait_until(lambda: orchestrator.state is OrchestratorState.COMPLETING)
        result = await orchestrator.skip()

        assert result.status is SkipStatus.ADVANCING
        assert not result.accepted
        await wait_until(
            lambda: len(fake_engine.runs) == 2
            and orchestrator.state is OrchestratorState.STREAMING
        )
        assert orchestrator.current_item.source_ref == URL_B

    @pytest.mark.asyncio
    async def test_completion_of_last_item_tears_down(
        self, orchestrator, fake_engine, fake_transport, stream_status, wait_until
    ):
        """Should return to idle and disconnect after the last item."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        fake_engine.runs[0].finish()
        await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)

        assert orchestrator.queue.is_empty()
        assert stream_status.playing is False
        assert fake_transport.connected is False
        assert fake_transport.activity_texts[-1] is None


# =============================================================================
# Skip Tests
# =============================================================================


class TestSkip:
    """Unit tests for PlaybackOrchestrator.skip."""

    @pytest.mark.asyncio
    async def test_skip_nothing_playing(self, orchestrator):
        """Should report that nothing is playing."""
        result = await orchestrator.skip()

        assert result.status is SkipStatus.NOTHING_PLAYING
        assert result.accepted is False

    @pytest.mark.asyncio
    async def test_skip_hands_off_to_next_item(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, wait_until
    ):
        """Should stop A, announce the skip and start B without reconnecting."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        result = await orchestrator.skip()

        assert result.status is SkipStatus.SKIPPED
        assert result.skipped.source_ref == URL_A
        assert result.next_item.source_ref == URL_B
        assert fake_engine.runs[0].stopped is True
        assert fake_transport.disconnect_calls == 0
        assert (
            DiscordUIMessages.TITLE_SKIP,
            DiscordUIMessages.ACTION_SKIPPING.format(current="a", next="b"),
        ) in fake_notifier.infos
        await wait_until(lambda: len(fake_engine.runs) == 2)
        assert fake_notifier.finished == 0

    @pytest.mark.asyncio
    async def test_skip_sole_item_goes_idle(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, stream_status, wait_until
    ):
        """Should empty the queue, tear down and disconnect."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        result = await orchestrator.skip()

        assert result.status is SkipStatus.EXHAUSTED
        assert orchestrator.state is OrchestratorState.IDLE
        assert orchestrator.queue.is_empty()
        assert orchestrator.queue.current_index is None
        assert stream_status.playing is False
        assert fake_transport.connected is False
        assert (
            DiscordUIMessages.TITLE_SKIP,
            DiscordUIMessages.STATE_NO_MORE_ITEMS,
        ) in fake_notifier.infos
        assert fake_notifier.errors == []

    @pytest.mark.asyncio
    async def test_double_skip_accepts_exactly_one(
        self, orchestrator, fake_engine, wait_until
    ):
        """Should reject the second of two immediate skips and advance by one item."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B, URL_C)

        first, second = await asyncio.gather(orchestrator.skip(), orchestrator.skip())

        statuses = [first.status, second.status]
        assert statuses.count(SkipStatus.SKIPPED) == 1
        assert statuses.count(SkipStatus.REJECTED) == 1
        assert [item.source_ref for item in orchestrator.queue.items()] == [URL_B, URL_C]
        assert orchestrator.queue.current().source_ref == URL_B
        await wait_until(lambda: len(fake_engine.runs) == 2)
        await asyncio.sleep(0.02)
        assert len(fake_engine.runs) == 2

    @pytest.mark.asyncio
    async def test_double_skip_with_two_items_rejects_second(
        self, orchestrator, fake_engine, wait_until
    ):
        """Should not let a draining skip overlap a hand-off in flight."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        first, second = await asyncio.gather(orchestrator.skip(), orchestrator.skip())

        assert first.status is SkipStatus.SKIPPED
        assert second.status is SkipStatus.REJECTED
        assert [item.source_ref for item in orchestrator.queue.items()] == [URL_B]

    @pytest.mark.asyncio
    async def test_skip_after_handoff_is_accepted_again(
        self, orchestrator, fake_engine, wait_until
    ):
        """Should release the guard once the hand-off completed."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B, URL_C)

        assert (await orchestrator.skip()).status is SkipStatus.SKIPPED
        await wait_until(
            lambda: len(fake_engine.runs) == 2
            and orchestrator.state is OrchestratorState.STREAMING
        )

        result = await orchestrator.skip()

        assert result.status is SkipStatus.SKIPPED
        assert result.next_item.source_ref == URL_C


# =============================================================================
# Stop Tests
# =============================================================================


class TestStop:
    """Unit tests for PlaybackOrchestrator.stop."""

    @pytest.mark.asyncio
    async def test_stop_clears_queue_and_tears_down(
        self, orchestrator, fake_engine, fake_transport, stream_status, wait_until
    ):
        """Should clear every item, kill the engine and disconnect."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        result = await orchestrator.stop()

        assert result.items_cleared == 2
        assert result.was_playing is True
        assert orchestrator.state is OrchestratorState.IDLE
        assert orchestrator.session is None
        assert fake_engine.runs[0].stopped is True
        assert fake_transport.connected is False
        assert stream_status.playing is False
        assert stream_status.current_progress is None

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, orchestrator, fake_engine, fake_transport, wait_until):
        """Should be a safe no-op when already idle."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)
        await orchestrator.stop()

        result = await orchestrator.stop()

        assert result.items_cleared == 0
        assert result.was_playing is False
        assert fake_transport.disconnect_calls == 1
        assert orchestrator.state is OrchestratorState.IDLE

    @pytest.mark.asyncio
    async def test_stop_sends_no_error_or_finished(
        self, orchestrator, fake_engine, fake_notifier, wait_until
    ):
        """Should end the session silently."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        await orchestrator.stop()
        await asyncio.sleep(0.02)

        assert fake_notifier.errors == []
        assert fake_notifier.finished == 0


# =============================================================================
# Failure Handling Tests
# =============================================================================


class TestFailures:
    """Unit tests for failure recovery."""

    @pytest.mark.asyncio
    async def test_runtime_error_marks_failed_and_plays_next(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, wait_until
    ):
        """Should record A as failed, remove it, notify once and start B."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_B)

        fake_engine.runs[0].fail("decoder exploded")
        await wait_until(
            lambda: len(fake_engine.runs) == 2
            and orchestrator.state is OrchestratorState.STREAMING
        )

        assert URL_A in orchestrator.failed_sources
        assert [item.source_ref for item in orchestrator.queue.items()] == [URL_B]
        assert len(fake_notifier.errors) == 1
        assert "decoder exploded" in fake_notifier.errors[0]
        assert fake_notifier.finished == 0
        assert fake_transport.disconnect_calls == 0

    @pytest.mark.asyncio
    async def test_failed_source_duplicates_are_dropped(
        self, orchestrator, fake_engine, fake_notifier, wait_until
    ):
        """Should not retry a failed source that is queued again further back."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A, URL_A, URL_C)

        fake_engine.runs[0].fail()
        await wait_until(lambda: len(fake_engine.runs) == 2)

        assert fake_engine.runs[1].input_ref == f"{URL_C}#media"
        assert [item.source_ref for item in orchestrator.queue.items()] == [URL_C]
        assert len(fake_notifier.errors) == 1
        assert (
            DiscordUIMessages.TITLE_QUEUE,
            DiscordUIMessages.STATE_DROPPED_FAILED.format(title="a"),
        ) in fake_notifier.infos

    @pytest.mark.asyncio
    async def test_resubmitting_failed_source_clears_mark(
        self, orchestrator, fake_engine, wait_until
    ):
        """Should give an explicitly re-queued source a fresh chance."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)
        fake_engine.runs[0].fail()
        await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)
        assert URL_A in orchestrator.failed_sources

        await orchestrator.enqueue(URL_A, "tester")

        assert URL_A not in orchestrator.failed_sources

    @pytest.mark.asyncio
    async def test_engine_start_error_tears_down(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, wait_until
    ):
        """Should treat a start failure as a failed item."""
        fake_engine.start_error = EngineStartError("Failed to start ffmpeg: missing")
        await orchestrator.enqueue(URL_A, "tester")

        await orchestrator.play()
        await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)

        assert len(fake_notifier.errors) == 1
        assert "missing" in fake_notifier.errors[0]
        assert URL_A in orchestrator.failed_sources
        assert fake_transport.connected is False

    @pytest.mark.asyncio
    async def test_unresolvable_source_fails_item(
        self, orchestrator, fake_resolver, fake_notifier
    ):
        """Should fail a source that neither resolves nor is a URL or file."""
        fake_resolver.unresolvable.add("definitely not a file")
        await orchestrator.enqueue("definitely not a file", "tester")

        result = await orchestrator.play()

        assert result.status is PlayStatus.ITEM_FAILED
        assert len(fake_notifier.errors) == 1
        assert orchestrator.state is OrchestratorState.IDLE
        assert orchestrator.queue.is_empty()

    @pytest.mark.asyncio
    async def test_unresolved_url_streams_raw_reference(
        self, orchestrator, fake_engine, fake_resolver, wait_until
    ):
        """Should hand a URL the resolver could not handle straight to the engine."""
        fake_resolver.unresolvable.add(URL_A)

        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        assert fake_engine.runs[0].input_ref == URL_A

    @pytest.mark.asyncio
    async def test_download_failure_skips_only_that_item(
        self, orchestrator, fake_engine, fake_resolver, fake_notifier, wait_until
    ):
        """Should abort the staged item and continue with the next one."""
        fake_resolver.staged.add(URL_A)
        fake_resolver.download_error = DownloadFailureError(URL_A)
        await orchestrator.enqueue(URL_A, "tester")
        await orchestrator.enqueue(URL_B, "tester")

        result = await orchestrator.play()
        await wait_until(lambda: len(fake_engine.runs) == 1)

        assert result.status is PlayStatus.ITEM_FAILED
        assert fake_engine.runs[0].input_ref == f"{URL_B}#media"
        assert len(fake_notifier.errors) == 1
        assert URL_A in orchestrator.failed_sources

    @pytest.mark.asyncio
    async def test_connect_failure_keeps_queue(
        self, orchestrator, fake_transport, fake_notifier, stream_status
    ):
        """Should report the failure upward, notify once and keep the queue."""
        fake_transport.connect_result = False
        await orchestrator.enqueue(URL_A, "tester")

        result = await orchestrator.play()

        assert result.status is PlayStatus.CONNECT_FAILED
        assert fake_notifier.errors == [DiscordUIMessages.ERROR_CONNECT_FAILED]
        assert orchestrator.state is OrchestratorState.IDLE
        assert len(orchestrator.queue) == 1
        assert stream_status.playing is False

    @pytest.mark.asyncio
    async def test_missing_destination_fails_connect(self, orchestrator, fake_transport):
        """Should not try to connect without a configured destination."""
        orchestrator.set_destination(0, 0)
        await orchestrator.enqueue(URL_A, "tester")

        result = await orchestrator.play()

        assert result.status is PlayStatus.CONNECT_FAILED
        assert fake_transport.connect_calls == 0

    @pytest.mark.asyncio
    async def test_transport_error_fails_item(
        self, orchestrator, fake_engine, fake_transport, fake_notifier, wait_until
    ):
        """Should turn a transport failure while streaming into one failed item."""
        fake_transport.stream_error = RuntimeError("voice websocket closed")
        await orchestrator.enqueue(URL_A, "tester")

        await orchestrator.play()
        await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)

        assert len(fake_notifier.errors) == 1
        assert "voice websocket closed" in fake_notifier.errors[0]


# =============================================================================
# Staging Tests
# =============================================================================


class TestStaging:
    """Unit tests for downloaded sources."""

    @pytest.mark.asyncio
    async def test_staged_file_is_streamed_and_removed(
        self, orchestrator, fake_engine, fake_resolver, fake_notifier, wait_until
    ):
        """Should stream the downloaded file and delete it afterwards."""
        fake_resolver.staged.add(URL_A)

        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)
        staged_path = fake_resolver.download_dir / "1.mp4"

        assert fake_engine.runs[0].input_ref == str(staged_path)
        assert staged_path.exists()
        assert fake_notifier.infos[0][0] == DiscordUIMessages.TITLE_DOWNLOAD

        fake_engine.runs[0].finish()
        await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)

        assert not staged_path.exists()

    @pytest.mark.asyncio
    async def test_live_sources_are_not_staged(
        self, orchestrator, fake_engine, fake_resolver, wait_until
    ):
        """Should stream live sources directly even when staging is requested."""
        fake_resolver.staged.add(URL_A)
        fake_resolver.live.add(URL_A)

        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        assert fake_resolver.downloads == []
        assert fake_engine.runs[0].input_ref == f"{URL_A}#media"


# =============================================================================
# Telemetry Tests
# =============================================================================


class TestTelemetry:
    """Unit tests for telemetry flowing into the progress snapshot."""

    @pytest.mark.asyncio
    async def test_telemetry_updates_progress(
        self, orchestrator, fake_engine, stream_status, wait_until
    ):
        """Should parse engine lines into the shared progress snapshot."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)

        fake_engine.runs[0].emit("out_time_ms=25000000")
        await wait_until(
            lambda: stream_status.current_progress is not None
            and stream_status.current_progress.percent == 50
        )

        assert stream_status.current_progress.current_time_seconds == 25

    @pytest.mark.asyncio
    async def test_stale_session_events_are_ignored(
        self, orchestrator, fake_engine, stream_status, wait_until
    ):
        """Should drop telemetry tagged with another session id."""
        await _start_streaming(orchestrator, fake_engine, wait_until, URL_A)
        run = fake_engine.runs[0]

        run.emit_foreign(run.session_id + 1000, "out_time_ms=40000000")
        run.emit("out_time_ms=5000000")
        await wait_until(
            lambda: stream_status.current_progress is not None
            and stream_status.current_progress.current_time_seconds == 5
        )

        assert stream_status.current_progress.percent == 10


# =============================================================================
# Stall Watchdog Tests
# =============================================================================


class TestStallWatchdog:
    """Unit tests for the optional stall timeout."""

    @pytest.mark.asyncio
    async def test_silent_engine_fails_after_timeout(
        self,
        playback_queue,
        stream_status,
        fake_engine,
        fake_transport,
        fake_notifier,
        fake_resolver,
        wait_until,
    ):
        """Should fail the item when the engine emits nothing for too long."""
        from discord_stream_player.application.services.playback_orchestrator import (
            PlaybackOrchestrator,
        )
        from discord_stream_player.application.services.progress_tracker import ProgressTracker
        from discord_stream_player.domain.shared.events import EventBus
        from discord_stream_player.domain.streaming.value_objects import Destination

        orchestrator = PlaybackOrchestrator(
            queue=playback_queue,
            status=stream_status,
            engine=fake_engine,
            transport=fake_transport,
            resolver=fake_resolver,
            notifier=fake_notifier,
            progress=ProgressTracker(stream_status, fake_notifier, fake_transport),
            destination=Destination(group_id=1, channel_id=2),
            connect_settle_seconds=0.0,
            handoff_delay_seconds=0.0,
            stall_timeout_seconds=0.05,
            stop_grace_seconds=0.5,
            event_bus=EventBus(),
        )
        await orchestrator.enqueue(URL_A, "tester")

        try:
            await orchestrator.play()
            await wait_until(lambda: orchestrator.state is OrchestratorState.IDLE)

            assert len(fake_notifier.errors) == 1
            assert "No progress from ffmpeg" in fake_notifier.errors[0]
            assert fake_engine.runs[0].stopped is True
        finally:
            await orchestrator.stop()
