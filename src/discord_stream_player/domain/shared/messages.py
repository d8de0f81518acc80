"""Centralized message constants for error messages, logging, and user feedback."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    # Queue Validation Errors
    EMPTY_SOURCE_REF = "Source reference cannot be empty"

    # Streaming Errors
    SOURCE_UNRESOLVABLE = "Could not resolve a playable source for {source}"
    ENGINE_START_FAILED = "Failed to start ffmpeg: {error}"
    ENGINE_RUNTIME_FAILED = "ffmpeg error: {error}"
    ENGINE_STALLED = "No progress from ffmpeg for {seconds}s"
    DESTINATION_NOT_SET = "No destination channel configured"

    # Configuration Errors
    DISCORD_TOKEN_REQUIRED = "DISCORD__TOKEN environment variable is required"
    CONTAINER_NOT_FOUND = "Container not found on bot instance"


class LogTemplates:
    """Log message templates for structured logging.

    Use these with logger.info(), logger.error(), etc. and pass values as parameters
    for proper log formatting and structured logging support.
    """

    # Queue Operations
    QUEUE_ENQUEUED = "Enqueued item %s '%s' (position %s)"
    QUEUE_EXHAUSTED = "Queue exhausted after '%s'"
    QUEUE_DROPPED_FAILED = "Dropping item %s: source %r failed earlier"

    # Orchestrator Lifecycle
    STATE_TRANSITION = "Orchestrator %s -> %s"
    STATE_TRANSITION_INVALID = "Unexpected orchestrator transition %s -> %s"
    PLAY_ALREADY_PLAYING = "Play requested while already playing"
    PLAY_QUEUE_EMPTY = "Play requested with an empty queue"
    SESSION_STARTED = "Session %s started for '%s' (duration=%ss, live=%s)"
    SESSION_FINISHED = "Session %s finished for '%s'"
    SESSION_CANCELLED = "Session %s cancelled for '%s'"
    SESSION_FAILED = "Session %s failed for '%s': %s"
    SESSION_STALE_EVENT = "Discarding event from stale session %s (current %s)"
    SESSION_STALLED = "Session %s stalled, no telemetry for %ss"
    SKIP_REJECTED = "Skip rejected: another skip is in flight"
    SKIP_ACCEPTED = "Skip accepted (%s), next item: %s"
    SKIP_IGNORED = "Skip ignored while %s"
    STOP_REQUESTED = "Stop requested, clearing %s items"
    HANDOFF = "Handing off from '%s' to '%s'"
    TEARDOWN_FULL = "Full teardown"
    TEARDOWN_ERROR = "Error during teardown step %s"
    SOURCE_MARKED_FAILED = "Marked source %r as failed"
    SOURCE_RESOLVE_ERROR = "Resolver raised for %r, falling back to raw input"
    SOURCE_STAGED = "Staged %r at %s"
    TEMP_FILE_REMOVED = "Removed temporary file %s"
    TEMP_FILE_REMOVE_FAILED = "Failed to remove temporary file %s: %r"
    NOTIFY_FAILED = "Failed to send %s notification"
    NOTIFY_CHANNEL_NOT_FOUND = "Notification channel %s not found"

    # Progress Tracking
    PROGRESS_STARTED = "Progress tracking started for '%s'"
    PROGRESS_STOPPED = "Progress tracking stopped"
    PROGRESS_DISPLAY_FAILED = "Failed to refresh progress display: %r"
    PROGRESS_DISPLAY_DELETE_FAILED = "Progress display already gone: %r"
    PROGRESS_ACTIVITY_FAILED = "Failed to update activity text: %r"
    PROGRESS_STALE_UPDATE = "Ignoring progress from stale session %s"

    # Engine
    ENGINE_SPAWNED = "Spawned ffmpeg (pid=%s) for session %s"
    ENGINE_EXITED = "ffmpeg for session %s exited with %s"
    ENGINE_KILLED = "Killed ffmpeg for session %s"
    ENGINE_KILL_ERROR = "Error stopping ffmpeg for session %s: %r"
    ENGINE_PROBE_FAILED = "ffprobe failed for %r: %s"
    ENGINE_COMMAND = "ffmpeg command: %s"

    # Resolution/Download
    YTDLP_FAILED_EXTRACT_INFO = "Failed to extract info from %s"
    YTDLP_FAILED_SEARCH = "Failed to search for %r"
    YTDLP_FAILED_DOWNLOAD = "Failed to download %s"
    YTDLP_DOWNLOADED = "Downloaded %s to %s"

    # Voice Operations
    VOICE_CONNECTED = "Connected to voice channel %s in %s"
    VOICE_DISCONNECTED = "Disconnected from voice in guild %s"
    VOICE_CONNECTION_TIMEOUT = "Timeout connecting to channel %s"
    VOICE_NO_PERMISSION = "No permission to connect to channel %s"
    VOICE_CLIENT_ERROR = "Client error connecting: %r"
    VOICE_NOT_CONNECTED = "Not connected to voice in guild %s"
    VOICE_CHANNEL_NOT_FOUND = "Voice channel %s not found in guild %s"
    VOICE_STREAM_ERROR = "Voice stream ended with error: %r"
    PRESENCE_UPDATE_FAILED = "Failed to update presence: %r"

    # Application Lifecycle
    BOT_STARTING = "Starting Discord Stream Player in {environment} mode"
    BOT_SETUP = "Setting up bot..."
    BOT_SETUP_COMPLETE = "Bot setup complete"
    BOT_STOPPED = "Bot stopped successfully"
    BOT_KEYBOARD_INTERRUPT = "Received keyboard interrupt, shutting down..."
    BOT_FATAL_ERROR = "Fatal error: %s"
    BOT_SHUTTING_DOWN = "Shutting down bot..."
    BOT_CONTAINER_SHUTDOWN = "Container shutdown complete"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Error during container shutdown: %s"
    BOT_SHUTDOWN_COMPLETE = "Bot shutdown complete"
    BOT_READY = "Bot ready as %s (%s)"
    BOT_COG_LOADED = "Loaded cog: %s"
    BOT_COG_LOAD_FAILED = "Failed to load cog %s: %s"
    BOT_COMMAND_ERROR = "Command error in '%s': %s"
    BOT_CONTAINER_INITIALIZED = "Container initialized"
    BOT_CONTAINER_INIT_FAILED = "Container initialization failed: %s"
    BOT_COGS_LOADED_SUMMARY = "Cogs loaded: %d ok, %d failed"
    BOT_ERROR_MESSAGE_SEND_FAILED = "Failed to send error message"
    BOT_SHUTDOWN_TIMEOUT = "Shutdown did not finish within %.0fs"
    BOT_STARTING_RUN = "Starting bot event loop"


class DiscordUIMessages:
    """User-facing Discord messages and responses.

    These strings are shown directly to users in the command channel.
    """

    # Message formats
    FORMAT_ERROR = "**Error**: {description}"
    FORMAT_SUCCESS = "**Success**: {description}"
    FORMAT_INFO = "**{title}**: {description}"
    NOW_PLAYING = "**Now Playing**: `{title}`"
    FINISHED = "**Finished**: Finished playing video."

    # Info titles
    TITLE_QUEUE = "Queue"
    TITLE_SKIP = "Skip"
    TITLE_PLAYBACK = "Playback"
    TITLE_DOWNLOAD = "Download"
    TITLE_STATUS = "Status"

    # Playback actions
    ACTION_QUEUED = "Added `{title}` to the queue (position {position})."
    ACTION_SKIPPING = "Skipping `{current}`. Playing next: `{next}`"
    ACTION_STOPPED = "Stopped playback and cleared the queue."
    ACTION_DOWNLOADING = "📥 Downloading `{title}`..."

    # State messages
    STATE_NO_MORE_ITEMS = "No more videos in queue."
    STATE_QUEUE_EMPTY = "Queue is empty."
    STATE_ALREADY_PLAYING = "Already playing a video. Use skip or stop first."
    STATE_NOTHING_PLAYING = "Nothing is playing."
    STATE_SKIP_IN_PROGRESS = "A skip is already in progress."
    STATE_ADVANCING = "Already moving on to the next video."
    STATE_DROPPED_FAILED = "Skipped `{title}`: this source already failed. Queue it again to retry."
    STATE_QUEUE_LINE = "{position}. `{title}` (added by {submitter})"
    STATE_STATUS = "State: {state} | Connected: {connected} | Queue: {length}"

    # Errors
    ERROR_PLAYBACK_FAILED = "Failed to play `{title}`: {error}"
    ERROR_CONNECT_FAILED = "Could not join the video channel."
    ERROR_MISSING_ARGUMENT = "Missing argument: {param_name}"
    ERROR_COMMAND_FAILED = "Command failed. See logs."

    # Progress rendering
    PROGRESS_LIVE = "🔴 LIVE [{elapsed}] - {title}"
    PROGRESS_VOD = "{bar} {percent}% [{current}/{total}] - {title}"
    PROGRESS_BAR_FILLED = "▓"
    PROGRESS_BAR_EMPTY = "░"
    PROGRESS_BAR_SEGMENTS = 10
