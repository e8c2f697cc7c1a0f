"""Scripted transcoder double."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from src.influence.domain.errors import ProbeError
from src.influence.domain.models import MediaProbeResult, TranscodePlan
from src.influence.media.transcoder import MediaTranscoder


@dataclass(slots=True)
class TranscodeCall:
    media_ref: str
    plan: TranscodePlan
    output_path: str


@dataclass
class FakeTranscoder(MediaTranscoder):
    """Return canned probe results and record transcode requests.

    ``transcoded_probe`` is what probing any transcoded output returns;
    ``fail_transcode`` makes every transcode raise.
    """

    probes: Dict[str, MediaProbeResult] = field(default_factory=dict)
    transcoded_probe: MediaProbeResult | None = None
    fail_transcode: Exception | None = None
    probe_calls: List[str] = field(default_factory=list)
    transcode_calls: List[TranscodeCall] = field(default_factory=list)

    async def probe(self, media_ref: str) -> MediaProbeResult:
        self.probe_calls.append(media_ref)
        if media_ref in self.probes:
            return self.probes[media_ref]
        if self.transcoded_probe is not None and any(
            call.output_path == media_ref for call in self.transcode_calls
        ):
            return self.transcoded_probe
        raise ProbeError(f"no probe scripted for {media_ref}")

    async def transcode(
        self,
        media_ref: str,
        plan: TranscodePlan,
        *,
        output_path: str,
    ) -> str:
        self.transcode_calls.append(TranscodeCall(media_ref, plan, output_path))
        if self.fail_transcode is not None:
            raise self.fail_transcode
        return output_path


def hd_landscape(*, duration: float = 60.0, size_mb: float = 50.0) -> MediaProbeResult:
    return MediaProbeResult(
        width=1920,
        height=1080,
        duration_seconds=duration,
        size_bytes=int(size_mb * 1024 * 1024),
    )


__all__ = ["FakeTranscoder", "TranscodeCall", "hd_landscape"]
