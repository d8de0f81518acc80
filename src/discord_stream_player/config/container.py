"""Dependency Injection Container

Builds the playback object graph lazily: queue, status, engine, resolver,
Discord transport and notifier, progress tracker and the orchestrator that
ties them together. Components are created on first access and cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from discord.ext.commands import Bot

    from ..application.interfaces.channel_notifier import ChannelNotifier
    from ..application.interfaces.destination_transport import DestinationTransport
    from ..application.interfaces.source_resolver import SourceResolver
    from ..application.interfaces.streaming_engine import StreamOptions
    from ..application.services.playback_orchestrator import PlaybackOrchestrator
    from ..application.services.progress_tracker import ProgressTracker
    from ..domain.shared.events import EventBus
    from ..domain.streaming.queue import PlaybackQueue
    from ..domain.streaming.value_objects import StreamStatus
    from ..infrastructure.engine.ffmpeg_engine import FFmpegEngine
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    Discord-facing components need the bot, so ``set_bot`` must be called
    before the transport, notifier or orchestrator is first accessed.
    """

    settings: Settings
    _bot: Bot | None = None

    # Domain state
    _queue: PlaybackQueue | None = None
    _status: StreamStatus | None = None
    _event_bus: EventBus | None = None

    # Infrastructure adapters
    _engine: FFmpegEngine | None = None
    _resolver: SourceResolver | None = None
    _transport: DestinationTransport | None = None
    _notifier: ChannelNotifier | None = None

    # Application services
    _progress_tracker: ProgressTracker | None = None
    _orchestrator: PlaybackOrchestrator | None = None

    def set_bot(self, bot: Bot) -> None:
        """Set the Discord bot instance."""
        self._bot = bot

    @property
    def bot(self) -> Bot:
        """Get the Discord bot instance."""
        if self._bot is None:
            raise RuntimeError("Bot not initialized. Call set_bot() first.")
        return self._bot

    # === Domain state ===

    @property
    def queue(self) -> PlaybackQueue:
        if self._queue is None:
            from ..domain.streaming.queue import PlaybackQueue

            self._queue = PlaybackQueue()
        return self._queue

    @property
    def status(self) -> StreamStatus:
        if self._status is None:
            from ..domain.streaming.value_objects import StreamStatus

            self._status = StreamStatus()
        return self._status

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            from ..domain.shared.events import get_event_bus

            self._event_bus = get_event_bus()
        return self._event_bus

    # === Infrastructure ===

    @property
    def engine(self) -> FFmpegEngine:
        """Get the ffmpeg streaming engine."""
        if self._engine is None:
            from ..infrastructure.engine.ffmpeg_engine import FFmpegEngine
            from ..infrastructure.engine.models import FFmpegConfig

            stream = self.settings.stream
            self._engine = FFmpegEngine(
                FFmpegConfig(ffmpeg_path=stream.ffmpeg_path, ffprobe_path=stream.ffprobe_path)
            )
        return self._engine

    @property
    def resolver(self) -> SourceResolver:
        """Get the yt-dlp source resolver."""
        if self._resolver is None:
            from ..infrastructure.resolver.ytdlp_resolver import YtDlpResolver

            self._resolver = YtDlpResolver(self.settings.resolver)
        return self._resolver

    @property
    def transport(self) -> DestinationTransport:
        """Get the Discord voice transport."""
        if self._transport is None:
            from ..infrastructure.discord.transport import DiscordVoiceTransport

            self._transport = DiscordVoiceTransport(
                self.bot, idle_status=self.settings.discord.idle_status
            )
        return self._transport

    @property
    def notifier(self) -> ChannelNotifier:
        """Get the command-channel notifier."""
        if self._notifier is None:
            from ..infrastructure.discord.notifier import DiscordChannelNotifier

            self._notifier = DiscordChannelNotifier(
                self.bot,
                self.settings.discord.command_channel_id,
                settings=self.settings.notifications,
            )
        return self._notifier

    # === Application services ===

    @property
    def progress_tracker(self) -> ProgressTracker:
        if self._progress_tracker is None:
            from ..application.services.progress_tracker import ProgressTracker

            progress = self.settings.progress
            self._progress_tracker = ProgressTracker(
                self.status,
                self.notifier,
                self.transport,
                interval_seconds=progress.update_interval_seconds,
                significant_change=progress.significant_change_percent,
            )
        return self._progress_tracker

    def stream_options(self) -> StreamOptions:
        """Engine options built from the stream settings."""
        from ..application.interfaces.streaming_engine import StreamOptions

        stream = self.settings.stream
        return StreamOptions(
            width=stream.width,
            height=stream.height,
            fps=stream.fps,
            bitrate_kbps=stream.bitrate_kbps,
            max_bitrate_kbps=stream.max_bitrate_kbps,
            hardware_acceleration=stream.hardware_acceleration,
            video_sink=stream.video_sink_url or None,
        )

    @property
    def orchestrator(self) -> PlaybackOrchestrator:
        """Get the playback orchestrator."""
        if self._orchestrator is None:
            from ..application.services.playback_orchestrator import PlaybackOrchestrator
            from ..domain.streaming.value_objects import Destination

            discord_settings = self.settings.discord
            stream = self.settings.stream
            self._orchestrator = PlaybackOrchestrator(
                queue=self.queue,
                status=self.status,
                engine=self.engine,
                transport=self.transport,
                resolver=self.resolver,
                notifier=self.notifier,
                progress=self.progress_tracker,
                destination=Destination(
                    group_id=discord_settings.guild_id,
                    channel_id=discord_settings.video_channel_id,
                ),
                stream_options=self.stream_options(),
                respect_video_params=stream.respect_video_params,
                connect_settle_seconds=stream.connect_settle_seconds,
                handoff_delay_seconds=stream.handoff_delay_seconds,
                stall_timeout_seconds=stream.stall_timeout_seconds,
                stop_grace_seconds=stream.stop_grace_seconds,
                post_progress_message=self.settings.progress.post_progress_message,
                event_bus=self.event_bus,
            )
        return self._orchestrator

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Eagerly build the playback graph so configuration errors surface at startup."""
        _ = self.orchestrator

    async def shutdown(self) -> None:
        """Stop playback and kill any engine process still running."""
        if self._orchestrator is not None:
            try:
                await self._orchestrator.shutdown()
            except Exception as exc:
                logger.warning("Failed stopping orchestrator: %r", exc)

        if self._engine is not None:
            stopped = await self._engine.stop_all()
            if stopped:
                logger.info("Killed %d leftover ffmpeg process(es)", stopped)


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
