"""
FFmpeg Streaming Engine

Infrastructure component that runs one ffmpeg process per playback session,
exposing its PCM output and a typed event channel built from its progress
output.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import deque
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from discord_stream_player.application.interfaces.streaming_engine import (
    EngineEvent,
    EngineExited,
    EngineFailed,
    EngineSession,
    StreamingEngine,
    TelemetryLine,
    VideoParams,
)
from discord_stream_player.domain.shared.exceptions import EngineStartError
from discord_stream_player.domain.shared.messages import ErrorMessages, LogTemplates
from discord_stream_player.domain.streaming.telemetry import tokenize

from .models import KILL_TIMEOUT, PROBE_TIMEOUT, STDERR_TAIL_LINES, FFmpegConfig

if TYPE_CHECKING:
    from discord_stream_player.application.interfaces.streaming_engine import StreamOptions
    from discord_stream_player.domain.streaming.session import CancellationToken

logger = logging.getLogger(__name__)


def _parse_frame_rate(value: str | None) -> float | None:
    if not value or "/" not in value:
        return None
    numerator, _, denominator = value.partition("/")
    try:
        rate = float(numerator) / float(denominator)
    except (ValueError, ZeroDivisionError):
        return None
    return rate if math.isfinite(rate) and rate > 0 else None


class FFmpegEngine(StreamingEngine):
    """Streaming engine backed by ffmpeg subprocesses."""

    def __init__(self, config: FFmpegConfig | None = None) -> None:
        self._config = config or FFmpegConfig()
        self._processes: dict[int, asyncio.subprocess.Process] = {}

    @property
    def active_sessions(self) -> int:
        return len(self._processes)

    # ── Probing ──────────────────────────────────────────────────────

    async def _run_probe(self, argv: list[str], input_ref: str) -> str | None:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning(LogTemplates.ENGINE_PROBE_FAILED, input_ref, exc)
            return None

        try:
            async with asyncio.timeout(PROBE_TIMEOUT):
                stdout, stderr = await process.communicate()
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(LogTemplates.ENGINE_PROBE_FAILED, input_ref, "timeout")
            return None

        if process.returncode != 0:
            logger.warning(
                LogTemplates.ENGINE_PROBE_FAILED,
                input_ref,
                stderr.decode(errors="replace").strip(),
            )
            return None
        return stdout.decode(errors="replace").strip()

    async def probe_duration(self, input_ref: str) -> int:
        output = await self._run_probe(self._config.build_duration_probe(input_ref), input_ref)
        if not output:
            return 0
        try:
            duration = float(output.splitlines()[0])
        except ValueError:
            return 0
        if not math.isfinite(duration) or duration <= 0:
            return 0
        return math.floor(duration)

    async def probe_video_params(self, input_ref: str) -> VideoParams | None:
        output = await self._run_probe(self._config.build_video_probe(input_ref), input_ref)
        if not output:
            return None
        try:
            streams = json.loads(output).get("streams") or []
        except json.JSONDecodeError:
            return None
        if not streams:
            return None

        stream = streams[0]
        width, height = stream.get("width"), stream.get("height")
        if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
            return None
        return VideoParams(
            width=width,
            height=height,
            fps=_parse_frame_rate(stream.get("r_frame_rate") or stream.get("avg_frame_rate")),
            bitrate=stream.get("bit_rate"),
        )

    # ── Sessions ─────────────────────────────────────────────────────

    async def start_session(
        self,
        input_ref: str,
        options: StreamOptions,
        cancel_token: CancellationToken,
        *,
        session_id: int,
    ) -> EngineSession:
        argv = self._config.build_command(input_ref, options)
        logger.debug(LogTemplates.ENGINE_COMMAND, " ".join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise EngineStartError(
                ErrorMessages.ENGINE_START_FAILED.format(error=exc), source=input_ref
            ) from exc

        if process.stdout is None or process.stderr is None:
            process.kill()
            raise EngineStartError(
                ErrorMessages.ENGINE_START_FAILED.format(error="no pipes"), source=input_ref
            )

        self._processes[session_id] = process
        logger.info(LogTemplates.ENGINE_SPAWNED, process.pid, session_id)

        return EngineSession(
            session_id=session_id,
            events=self._events(process, session_id, cancel_token),
            output=process.stdout,
            input_ref=input_ref,
            extra={"pid": process.pid},
        )

    async def _events(
        self,
        process: asyncio.subprocess.Process,
        session_id: int,
        cancel_token: CancellationToken,
    ) -> AsyncIterator[EngineEvent]:
        """Turn stderr into telemetry events, then one terminal event.

        ``-progress`` writes one ``key=value`` per line and closes each report
        with a ``progress=`` line, so keys are gathered into a single telemetry
        line per report.
        """
        assert process.stderr is not None
        tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        block: list[str] = []

        try:
            async for raw in process.stderr:
                line = raw.decode(errors="replace").strip()
                if not line:
                    continue
                tokens = tokenize(line)
                if not tokens:
                    tail.append(line)
                    continue
                block.append(line)
                if "progress" in tokens:
                    yield TelemetryLine(session_id=session_id, line=" ".join(block))
                    block.clear()

            if block:
                yield TelemetryLine(session_id=session_id, line=" ".join(block))
            return_code = await process.wait()
        finally:
            self._processes.pop(session_id, None)

        logger.info(LogTemplates.ENGINE_EXITED, session_id, return_code)
        if return_code != 0 and not cancel_token.cancelled:
            stderr = "\n".join(tail)
            message = tail[-1] if tail else f"exit code {return_code}"
            yield EngineFailed(
                session_id=session_id,
                message=ErrorMessages.ENGINE_RUNTIME_FAILED.format(error=message),
                stderr=stderr or None,
            )
        else:
            yield EngineExited(session_id=session_id, return_code=return_code)

    async def stop_session(self, session: EngineSession) -> None:
        await self._kill(session.session_id)

    async def _kill(self, session_id: int) -> None:
        process = self._processes.pop(session_id, None)
        if process is None or process.returncode is not None:
            return
        try:
            process.kill()
            async with asyncio.timeout(KILL_TIMEOUT):
                await process.wait()
            logger.info(LogTemplates.ENGINE_KILLED, session_id)
        except ProcessLookupError:
            pass
        except Exception as exc:
            logger.debug(LogTemplates.ENGINE_KILL_ERROR, session_id, exc)

    async def stop_all(self) -> int:
        """Kill every running session. Returns how many were stopped."""
        session_ids = list(self._processes)
        for session_id in session_ids:
            await self._kill(session_id)
        return len(session_ids)

