"""Prefix-command cog for queueing and controlling the stream."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands

from discord_stream_player.application.services.orchestrator_models import (
    PlayStatus,
    SkipStatus,
)
from discord_stream_player.domain.shared.exceptions import ValidationError
from discord_stream_player.domain.shared.messages import DiscordUIMessages, ErrorMessages
from discord_stream_player.utils.reply import format_queue

if TYPE_CHECKING:
    from ....application.services.playback_orchestrator import PlaybackOrchestrator
    from ....config.container import Container

logger = logging.getLogger(__name__)

# Outcomes the orchestrator already reported through the notifier.
_NOTIFIED_PLAY_STATUSES = frozenset(
    {PlayStatus.STARTED, PlayStatus.CONNECT_FAILED, PlayStatus.ITEM_FAILED, PlayStatus.CANCELLED}
)


class StreamCog(commands.Cog):
    def __init__(self, bot: commands.Bot, container: Container) -> None:
        self.bot = bot
        self.container = container

    @property
    def orchestrator(self) -> PlaybackOrchestrator:
        return self.container.orchestrator

    async def cog_check(self, ctx: commands.Context) -> bool:
        command_channel_id = self.container.settings.discord.command_channel_id
        return not command_channel_id or ctx.channel.id == command_channel_id

    async def _reply(self, ctx: commands.Context, content: str) -> None:
        await ctx.reply(content, mention_author=False)

    @commands.command(name="play", description="Queue a URL, file or search and start playback.")
    async def play(self, ctx: commands.Context, *, source: str | None = None) -> None:
        if source:
            try:
                result = await self.orchestrator.enqueue(source, ctx.author.display_name)
            except ValidationError as e:
                await self._reply(ctx, DiscordUIMessages.FORMAT_ERROR.format(description=e.message))
                return

            await self._reply(
                ctx,
                DiscordUIMessages.FORMAT_INFO.format(
                    title=DiscordUIMessages.TITLE_QUEUE,
                    description=DiscordUIMessages.ACTION_QUEUED.format(
                        title=result.item.display_title, position=result.position
                    ),
                ),
            )
            if not result.should_start:
                return

        play_result = await self.orchestrator.play()
        if play_result.status in _NOTIFIED_PLAY_STATUSES:
            return
        await self._reply(
            ctx,
            DiscordUIMessages.FORMAT_INFO.format(
                title=DiscordUIMessages.TITLE_PLAYBACK, description=play_result.message
            ),
        )

    @commands.command(name="skip", description="Skip the current video.")
    async def skip(self, ctx: commands.Context) -> None:
        result = await self.orchestrator.skip()

        if result.status is SkipStatus.NOTHING_PLAYING:
            description = DiscordUIMessages.STATE_NOTHING_PLAYING
        elif result.status is SkipStatus.REJECTED:
            description = DiscordUIMessages.STATE_SKIP_IN_PROGRESS
        elif result.status is SkipStatus.ADVANCING:
            description = DiscordUIMessages.STATE_ADVANCING
        else:
            return

        await self._reply(
            ctx,
            DiscordUIMessages.FORMAT_INFO.format(
                title=DiscordUIMessages.TITLE_SKIP, description=description
            ),
        )

    @commands.command(name="stop", description="Stop playback and clear the queue.")
    async def stop(self, ctx: commands.Context) -> None:
        await self.orchestrator.stop()
        await self._reply(
            ctx, DiscordUIMessages.FORMAT_SUCCESS.format(description=DiscordUIMessages.ACTION_STOPPED)
        )

    @commands.command(name="queue", description="Show the queued videos.")
    async def queue(self, ctx: commands.Context) -> None:
        await self._reply(
            ctx,
            DiscordUIMessages.FORMAT_INFO.format(
                title=DiscordUIMessages.TITLE_QUEUE,
                description="\n" + format_queue(self.orchestrator.queue.items()),
            ),
        )

    @commands.command(name="status", description="Show the player state.")
    async def status(self, ctx: commands.Context) -> None:
        orchestrator = self.orchestrator
        await self._reply(
            ctx,
            DiscordUIMessages.FORMAT_INFO.format(
                title=DiscordUIMessages.TITLE_STATUS,
                description=DiscordUIMessages.STATE_STATUS.format(
                    state=orchestrator.state.value,
                    connected=orchestrator.status.connected,
                    length=len(orchestrator.queue),
                ),
            ),
        )


async def setup(bot: commands.Bot) -> None:
    container = getattr(bot, "container", None)
    if container is None:
        raise RuntimeError(ErrorMessages.CONTAINER_NOT_FOUND)

    await bot.add_cog(StreamCog(bot, container))
