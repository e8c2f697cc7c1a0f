"""Media probing and transcoding backed by ffprobe/ffmpeg."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

import structlog

from ..domain.errors import ProbeError, TranscodeError, TranscoderUnavailableError
from ..domain.models import MediaProbeResult, Network, TranscodePlan

logger = structlog.get_logger(__name__)

BASE_ENCODE_ARGS: tuple[str, ...] = (
    "-c:v", "libx264",
    "-preset", "medium",
    "-crf", "23",
    "-c:a", "aac",
    "-b:a", "128k",
    "-map", "0:v:0",
    "-map", "0:a:0?",
)

PROBE_ARGS: tuple[str, ...] = (
    "-v", "error",
    "-select_streams", "v:0",
    "-show_entries", "stream=width,height,duration:format=duration",
    "-of", "json",
)

STDERR_TAIL_CHARS = 2000


class MediaTranscoder(ABC):
    """Capability used by the orchestrator to inspect and rewrite media."""

    @abstractmethod
    async def probe(self, media_ref: str) -> MediaProbeResult:
        """Return dimensions, duration and size of ``media_ref``."""

    @abstractmethod
    async def transcode(
        self,
        media_ref: str,
        plan: TranscodePlan,
        *,
        output_path: str,
    ) -> str:
        """Apply ``plan`` to ``media_ref`` and return the new media reference."""


def output_path_for(work_dir: Path, media_ref: str, network: Network) -> Path:
    """Name the transcoded artifact ``<stem>-<network>-reencoded<suffix>``."""

    source = Path(media_ref)
    suffix = source.suffix or ".mp4"
    return work_dir / f"{source.stem}-{network.value}-reencoded{suffix}"


class FfmpegTranscoder(MediaTranscoder):
    """Run ffprobe/ffmpeg as asyncio subprocesses.

    A missing binary surfaces as :class:`TranscoderUnavailableError` so the
    job is retried once the environment is fixed; a non-zero exit status is a
    regular :class:`TranscodeError` carrying the tail of stderr. When
    ``timeout_seconds`` is set the child process is killed on expiry.
    """

    def __init__(
        self,
        *,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float | None = None,
    ) -> None:
        self._ffmpeg_path = ffmpeg_path
        self._ffprobe_path = ffprobe_path
        self._timeout_seconds = timeout_seconds

    async def probe(self, media_ref: str) -> MediaProbeResult:
        path = Path(media_ref)
        if not path.is_file():
            raise ProbeError(
                f"media file not found: {media_ref}",
                details={"media_ref": media_ref},
                retryable=False,
            )

        returncode, stdout, stderr = await self._run(
            [self._ffprobe_path, *PROBE_ARGS, str(path)],
            error_cls=ProbeError,
        )
        if returncode != 0:
            raise ProbeError(
                "ffprobe failed",
                details={"media_ref": media_ref, "stderr": _tail(stderr)},
            )

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace") or "{}")
        except json.JSONDecodeError as exc:
            raise ProbeError(
                "ffprobe returned invalid JSON",
                details={"media_ref": media_ref},
            ) from exc

        streams = data.get("streams") or []
        if not streams:
            raise ProbeError(
                "No video stream found",
                details={"media_ref": media_ref},
                retryable=False,
            )
        stream: dict[str, Any] = streams[0]
        fmt: dict[str, Any] = data.get("format") or {}
        duration = _to_float(stream.get("duration"))
        if duration is None:
            duration = _to_float(fmt.get("duration")) or 0.0

        return MediaProbeResult(
            width=int(stream.get("width") or 0),
            height=int(stream.get("height") or 0),
            duration_seconds=duration,
            size_bytes=path.stat().st_size,
        )

    async def transcode(
        self,
        media_ref: str,
        plan: TranscodePlan,
        *,
        output_path: str,
    ) -> str:
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self._ffmpeg_path,
            "-y",
            "-i",
            media_ref,
            *BASE_ENCODE_ARGS,
            *plan.options,
            output_path,
        ]
        logger.info("transcode.started", media_ref=media_ref, options=plan.options)
        returncode, _, stderr = await self._run(cmd, error_cls=TranscodeError)
        if returncode != 0:
            raise TranscodeError(
                f"ffmpeg exited with status {returncode}",
                details={
                    "media_ref": media_ref,
                    "returncode": returncode,
                    "stderr": _tail(stderr),
                },
            )
        logger.info("transcode.finished", media_ref=media_ref, output_path=output_path)
        return output_path

    async def _run(
        self,
        cmd: Sequence[str],
        *,
        error_cls: type[ProbeError] | type[TranscodeError],
    ) -> tuple[int, bytes, bytes]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscoderUnavailableError(
                f"could not launch {cmd[0]}: {exc}",
                details={"tool": cmd[0]},
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise error_cls(
                f"{Path(cmd[0]).name} timed out after {self._timeout_seconds}s",
                details={"tool": cmd[0], "timeout_seconds": self._timeout_seconds},
            ) from exc
        return proc.returncode or 0, stdout or b"", stderr or b""


def _to_float(value: Any) -> float | None:
    if value in (None, "", "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _tail(stderr: bytes) -> str:
    return stderr.decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]


__all__ = ["FfmpegTranscoder", "MediaTranscoder", "output_path_for"]
