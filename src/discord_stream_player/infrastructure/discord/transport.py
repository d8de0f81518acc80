"""Discord voice transport implementing DestinationTransport for connection and streaming."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import TYPE_CHECKING

import discord

from discord_stream_player.application.interfaces.destination_transport import (
    DestinationTransport,
)
from discord_stream_player.domain.shared.exceptions import TransportConnectError
from discord_stream_player.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from discord_stream_player.application.interfaces.streaming_engine import OutputHandle
    from discord_stream_player.domain.streaming.session import CancellationToken

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT: float = 10.0
READ_TIMEOUT: float = 15.0
# 20 ms of 48 kHz stereo 16-bit PCM, the frame size discord.py encodes.
FRAME_SIZE: int = discord.opus.Encoder.FRAME_SIZE


class PipeAudioSource(discord.AudioSource):
    """Feeds PCM frames from the engine's async output to discord.py's player thread."""

    def __init__(self, output: OutputHandle, loop: asyncio.AbstractEventLoop) -> None:
        self._output = output
        self._loop = loop
        self._closed = False
        self.error: Exception | None = None

    def read(self) -> bytes:
        if self._closed:
            return b""
        future = asyncio.run_coroutine_threadsafe(self._output.readexactly(FRAME_SIZE), self._loop)
        try:
            return future.result(timeout=READ_TIMEOUT)
        except asyncio.IncompleteReadError as exc:
            # Pad the final partial frame; the next read ends the stream.
            self._closed = True
            return exc.partial + b"\x00" * (FRAME_SIZE - len(exc.partial)) if exc.partial else b""
        except (concurrent.futures.TimeoutError, TimeoutError) as exc:
            future.cancel()
            self.error = exc
            self._closed = True
            return b""
        except Exception as exc:
            self.error = exc
            self._closed = True
            return b""

    def is_opus(self) -> bool:
        return False

    def cleanup(self) -> None:
        self._closed = True


class DiscordVoiceTransport(DestinationTransport):
    def __init__(self, bot: discord.Client, idle_status: str = "") -> None:
        self._bot = bot
        self._idle_status = idle_status
        self._guild_id: int | None = None

    def _get_voice_client(self) -> discord.VoiceClient | None:
        if self._guild_id is None:
            return None
        guild = self._bot.get_guild(self._guild_id)
        if not guild:
            return None

        vc = guild.voice_client
        return vc if isinstance(vc, discord.VoiceClient) else None

    async def connect(self, group_id: int, channel_id: int) -> bool:
        guild = self._bot.get_guild(group_id)
        if not guild:
            logger.warning(LogTemplates.VOICE_CHANNEL_NOT_FOUND, channel_id, group_id)
            return False

        channel = guild.get_channel(channel_id)
        if not isinstance(channel, discord.VoiceChannel | discord.StageChannel):
            logger.warning(LogTemplates.VOICE_CHANNEL_NOT_FOUND, channel_id, group_id)
            return False

        self._guild_id = group_id
        vc = self._get_voice_client()
        try:
            async with asyncio.timeout(CONNECT_TIMEOUT):
                if vc is not None and vc.is_connected():
                    if vc.channel is not None and vc.channel.id == channel_id:
                        return True
                    await vc.move_to(channel)
                else:
                    await channel.connect(self_deaf=True)
            logger.info(LogTemplates.VOICE_CONNECTED, channel.name, guild.name)
            return True
        except TimeoutError:
            logger.error(LogTemplates.VOICE_CONNECTION_TIMEOUT, channel_id)
            return False
        except discord.ClientException as e:
            logger.error(LogTemplates.VOICE_CLIENT_ERROR, e)
            return False
        except discord.Forbidden:
            logger.error(LogTemplates.VOICE_NO_PERMISSION, channel_id)
            return False

    async def disconnect(self) -> bool:
        vc = self._get_voice_client()
        if not vc:
            return True

        try:
            await vc.disconnect(force=True)
            logger.info(LogTemplates.VOICE_DISCONNECTED, self._guild_id)
            return True
        except Exception:
            logger.exception("Failed to disconnect from voice")
            return False

    def is_connected(self) -> bool:
        vc = self._get_voice_client()
        return vc is not None and vc.is_connected()

    async def set_activity_text(self, text: str | None) -> None:
        name = text or self._idle_status
        activity = discord.Activity(type=discord.ActivityType.watching, name=name) if name else None
        try:
            await self._bot.change_presence(activity=activity)
        except Exception as exc:
            logger.debug(LogTemplates.PRESENCE_UPDATE_FAILED, exc)

    async def stream(self, output: OutputHandle, cancel_token: CancellationToken) -> None:
        vc = self._get_voice_client()
        if vc is None or not vc.is_connected():
            logger.warning(LogTemplates.VOICE_NOT_CONNECTED, self._guild_id)
            raise TransportConnectError(self._guild_id or 0, 0, "Voice client is not connected")

        loop = asyncio.get_running_loop()
        finished: asyncio.Future[Exception | None] = loop.create_future()

        def _resolve(error: Exception | None) -> None:
            if not finished.done():
                finished.set_result(error)

        def after_callback(error: Exception | None = None) -> None:
            loop.call_soon_threadsafe(_resolve, error)

        if vc.is_playing():
            vc.stop()

        source = PipeAudioSource(output, loop)
        vc.play(source, after=after_callback)

        cancelled = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({finished, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()

        if not finished.done():
            source.cleanup()
            vc.stop()
            return

        error = finished.result() or source.error
        if error is not None:
            raise error
