"""ChannelNotifier implementation that posts to the configured Discord command channel."""

from __future__ import annotations

import logging
from typing import Any

import discord

from discord_stream_player.application.interfaces.channel_notifier import ChannelNotifier
from discord_stream_player.config.settings import NotificationSettings
from discord_stream_player.domain.shared.messages import DiscordUIMessages, LogTemplates
from discord_stream_player.utils.reply import truncate

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


class DiscordChannelNotifier(ChannelNotifier):
    """Sends playback messages to one text channel, auto-deleting them per settings."""

    def __init__(
        self,
        bot: discord.Client,
        channel_id: int,
        settings: NotificationSettings | None = None,
    ) -> None:
        self._bot = bot
        self._channel_id = channel_id
        self._settings = settings or NotificationSettings()

    def _get_channel(self) -> discord.abc.Messageable | None:
        channel = self._bot.get_channel(self._channel_id)
        if isinstance(channel, discord.abc.Messageable):
            return channel
        logger.warning(LogTemplates.NOTIFY_CHANNEL_NOT_FOUND, self._channel_id)
        return None

    def _delete_after(self, enabled: bool) -> float | None:
        if not enabled or self._settings.auto_delete_delay_seconds <= 0:
            return None
        return float(self._settings.auto_delete_delay_seconds)

    async def _send(self, content: str, *, auto_delete: bool) -> discord.Message | None:
        channel = self._get_channel()
        if channel is None:
            return None
        return await channel.send(
            truncate(content, MAX_MESSAGE_LENGTH),
            delete_after=self._delete_after(auto_delete),
        )

    async def send_info(self, title: str, description: str) -> None:
        await self._send(
            DiscordUIMessages.FORMAT_INFO.format(title=title, description=description),
            auto_delete=self._settings.auto_delete_info,
        )

    async def send_success(self, description: str) -> None:
        await self._send(
            DiscordUIMessages.FORMAT_SUCCESS.format(description=description),
            auto_delete=self._settings.auto_delete_success,
        )

    async def send_error(self, description: str) -> None:
        await self._send(
            DiscordUIMessages.FORMAT_ERROR.format(description=description),
            auto_delete=self._settings.auto_delete_error,
        )

    async def send_playing(self, title: str) -> None:
        await self._send(DiscordUIMessages.NOW_PLAYING.format(title=title), auto_delete=False)

    async def send_finished(self) -> None:
        await self._send(DiscordUIMessages.FINISHED, auto_delete=self._settings.auto_delete_finished)

    # ── Progress display ─────────────────────────────────────────────

    async def create_display(self, text: str) -> Any:
        return await self._send(text, auto_delete=False)

    async def edit_display(self, handle: Any, text: str) -> None:
        await handle.edit(content=truncate(text, MAX_MESSAGE_LENGTH))

    async def delete_display(self, handle: Any) -> None:
        await handle.delete()
