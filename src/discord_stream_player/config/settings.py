"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All settings are frozen and immutable
after initialization.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscordSettings(BaseModel):
    """Discord bot configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    command_prefix: str = Field(
        default="$",
        min_length=1,
        max_length=5,
        validation_alias=AliasChoices("command_prefix", "prefix"),
    )
    guild_id: int = Field(default=0, ge=0, validation_alias=AliasChoices("guild_id", "guild"))
    video_channel_id: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("video_channel_id", "voice_channel_id")
    )
    command_channel_id: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("command_channel_id", "cmd_channel_id")
    )
    idle_status: str = "$help"


class StreamSettings(BaseModel):
    """Engine output and session lifecycle configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    width: int = Field(default=1280, ge=16, le=7680)
    height: int = Field(default=720, ge=16, le=4320)
    fps: int = Field(default=30, ge=1, le=240)
    bitrate_kbps: int = Field(default=1000, ge=16)
    max_bitrate_kbps: int = Field(default=2500, ge=16)
    hardware_acceleration: bool = False
    respect_video_params: bool = False
    video_sink_url: str = ""
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    connect_settle_seconds: float = Field(default=2.0, ge=0.0, le=30.0)
    handoff_delay_seconds: float = Field(default=1.0, ge=0.0, le=30.0)
    stall_timeout_seconds: float = Field(default=0.0, ge=0.0)
    stop_grace_seconds: float = Field(default=2.0, ge=0.0, le=30.0)


class ProgressSettings(BaseModel):
    """Progress display configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True)

    update_interval_seconds: float = Field(default=10.0, gt=0.0)
    significant_change_percent: int = Field(default=5, ge=1, le=100)
    post_progress_message: bool = True


class NotificationSettings(BaseModel):
    """Auto-delete behaviour for channel messages."""

    model_config = SettingsConfigDict(frozen=True, strict=True)

    auto_delete_delay_seconds: int = Field(default=5, ge=0)
    auto_delete_error: bool = True
    auto_delete_success: bool = False
    auto_delete_info: bool = False
    auto_delete_finished: bool = True


class ResolverSettings(BaseModel):
    """yt-dlp resolution and download configuration."""

    model_config = SettingsConfigDict(frozen=True, strict=True, populate_by_name=True)

    ytdlp_format: str = "bestvideo[height<=720]+bestaudio/best[height<=720]/best"
    download_dir: str = Field(
        default="tmp", validation_alias=AliasChoices("download_dir", "videos_dir")
    )
    socket_timeout: int = Field(default=10, ge=1, le=120)
    retries: int = Field(default=3, ge=0, le=10)


class Settings(BaseSettings):
    """Application settings container.

    Automatically loads configuration from environment variables.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - DISCORD__TOKEN, DISCORD__GUILD_ID, DISCORD__VIDEO_CHANNEL_ID, ...
    - STREAM__WIDTH, STREAM__CONNECT_SETTLE_SECONDS, ...
    - PROGRESS__UPDATE_INTERVAL_SECONDS, NOTIFICATIONS__AUTO_DELETE_ERROR, ...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        strict=True,
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    stream: StreamSettings = Field(default_factory=StreamSettings)
    progress: ProgressSettings = Field(default_factory=ProgressSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
