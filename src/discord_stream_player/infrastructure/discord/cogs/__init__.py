"""Discord cogs - command handlers."""

from discord_stream_player.infrastructure.discord.cogs.stream_cog import StreamCog

__all__ = ["StreamCog"]
