"""SourceResolver implementation using yt-dlp for URL resolution, search and download."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from yt_dlp import YoutubeDL

from discord_stream_player.application.interfaces.source_resolver import (
    ResolvedSource,
    SourceResolver,
)
from discord_stream_player.config.settings import ResolverSettings
from discord_stream_player.domain.shared.exceptions import DownloadFailureError
from discord_stream_player.domain.shared.messages import LogTemplates
from discord_stream_player.domain.shared.validators import is_local_file, is_url
from discord_stream_player.domain.streaming.entities import SourceKind

from .models import (
    CACHE_MAX_SIZE,
    CACHE_TTL,
    LOG_URL_TRUNCATE,
    CacheEntry,
    YtDlpMediaInfo,
    YtDlpOpts,
)

logger = logging.getLogger(__name__)


class YtDlpResolver(SourceResolver):
    """Resolves URLs, local paths and search terms.

    Non-live YouTube media is marked for local staging; everything else is
    streamed straight from the extracted media URL.
    """

    def __init__(self, settings: ResolverSettings | None = None) -> None:
        self._settings = settings or ResolverSettings()
        self._download_dir = Path(self._settings.download_dir)
        self._base_opts = YtDlpOpts(
            format=self._settings.ytdlp_format,
            retries=self._settings.retries,
            socket_timeout=self._settings.socket_timeout,
        )
        self._cache: dict[str, CacheEntry] = {}

    def _get_opts(self, **overrides: Any) -> YtDlpOpts:
        if overrides:
            return self._base_opts.model_copy(update=overrides)
        return self._base_opts

    def _get_download_opts(self) -> YtDlpOpts:
        return self._get_opts(
            skip_download=False,
            outtmpl=str(self._download_dir / "%(id)s.%(ext)s"),
            merge_output_format="mp4",
        )

    # ── Sync helpers (run in a worker thread) ────────────────────────

    def _extract_info_sync(self, query: str) -> YtDlpMediaInfo | None:
        now = time.time()
        cached = self._cache.get(query)
        if cached is not None:
            if now - cached.cached_at < CACHE_TTL:
                return cached.info
            self._cache.pop(query, None)

        try:
            with YoutubeDL(params=self._get_opts().to_params()) as ydl:
                data = ydl.extract_info(query, download=False)
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT_INFO, query[:LOG_URL_TRUNCATE])
            return None

        if isinstance(data, dict) and data.get("entries") is not None:
            # Search results come back as a playlist of one.
            entries = [e for e in data.get("entries") or [] if isinstance(e, dict)]
            data = entries[0] if entries else None

        result = YtDlpMediaInfo.model_validate(dict(data)) if isinstance(data, dict) else None
        self._cache[query] = CacheEntry(info=result, cached_at=now)
        if len(self._cache) > CACHE_MAX_SIZE:
            expired = [k for k, e in self._cache.items() if now - e.cached_at >= CACHE_TTL]
            for key in expired:
                self._cache.pop(key, None)
        return result

    def _download_sync(self, query: str) -> Path:
        self._download_dir.mkdir(parents=True, exist_ok=True)
        with YoutubeDL(params=self._get_download_opts().to_params()) as ydl:
            data = ydl.extract_info(query, download=True)
            if not isinstance(data, dict):
                raise DownloadFailureError(query)
            if data.get("entries") is not None:
                entries = [e for e in data.get("entries") or [] if isinstance(e, dict)]
                if not entries:
                    raise DownloadFailureError(query)
                data = entries[0]

            requested = data.get("requested_downloads") or []
            filepath = requested[0].get("filepath") if requested else None
            path = Path(filepath) if filepath else Path(ydl.prepare_filename(data))

        if not path.is_file():
            raise DownloadFailureError(query, f"Downloaded file missing: {path}")
        return path

    # ── SourceResolver ───────────────────────────────────────────────

    async def resolve(self, raw_source: str) -> ResolvedSource | None:
        if not self.is_url(raw_source) and is_local_file(raw_source):
            local = Path(raw_source)
            return ResolvedSource(
                kind=SourceKind.FILE,
                playable_url=str(local),
                title=local.stem or local.name,
            )

        looks_like_url = self.is_url(raw_source)
        try:
            info = await asyncio.to_thread(self._extract_info_sync, raw_source)
        except Exception:
            logger.exception(
                LogTemplates.YTDLP_FAILED_EXTRACT_INFO
                if looks_like_url
                else LogTemplates.YTDLP_FAILED_SEARCH,
                raw_source,
            )
            return None

        if info is None:
            return None
        playable_url = info.playable_url()
        if not playable_url:
            return None

        return ResolvedSource(
            kind=SourceKind.URL if looks_like_url else SourceKind.SEARCH_RESULT,
            playable_url=playable_url,
            is_live=info.live,
            title=info.title,
            requires_staging=info.is_youtube and not info.live,
        )

    async def download(self, raw_source: str) -> Path:
        try:
            path = await asyncio.to_thread(self._download_sync, raw_source)
        except DownloadFailureError:
            logger.error(LogTemplates.YTDLP_FAILED_DOWNLOAD, raw_source)
            raise
        except Exception as exc:
            logger.exception(LogTemplates.YTDLP_FAILED_DOWNLOAD, raw_source)
            raise DownloadFailureError(raw_source, str(exc)) from exc

        logger.info(LogTemplates.YTDLP_DOWNLOADED, raw_source, path)
        return path

    def is_url(self, raw_source: str) -> bool:
        return is_url(raw_source)
