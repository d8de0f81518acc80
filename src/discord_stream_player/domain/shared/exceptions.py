"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


# === Streaming errors ===


class StreamingError(DomainError):
    """Base class for failures of a single playback attempt."""

    def __init__(self, message: str, source: str | None = None, code: str | None = None) -> None:
        super().__init__(message, code=code)
        self.source = source


class SourceUnresolvableError(StreamingError):
    """Raised when a source neither resolves nor works as a direct reference."""

    def __init__(self, source: str, message: str | None = None) -> None:
        msg = message or f"Could not resolve a playable source for '{source}'"
        super().__init__(msg, source=source, code="SOURCE_UNRESOLVABLE")


class TransportConnectError(StreamingError):
    """Raised when the destination transport cannot be established."""

    def __init__(self, group_id: int, channel_id: int, message: str | None = None) -> None:
        msg = message or f"Could not connect to channel {channel_id} in guild {group_id}"
        super().__init__(msg, code="TRANSPORT_CONNECT")
        self.group_id = group_id
        self.channel_id = channel_id


class EngineStartError(StreamingError):
    """Raised when the streaming engine process cannot be started."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message, source=source, code="ENGINE_START")


class EngineRuntimeError(StreamingError):
    """Raised when the streaming engine fails while a session is running."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        stdout: str | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message, source=source, code="ENGINE_RUNTIME")
        self.stdout = stdout
        self.stderr = stderr


class DownloadFailureError(StreamingError):
    """Raised when a source that needs local staging cannot be downloaded."""

    def __init__(self, source: str, message: str | None = None) -> None:
        msg = message or f"Failed to download '{source}'"
        super().__init__(msg, source=source, code="DOWNLOAD_FAILURE")
