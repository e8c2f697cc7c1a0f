"""Compare probed media against network constraints and plan fixes."""

from __future__ import annotations

from typing import Sequence

import structlog

from ..domain.constraints import ASPECT_RATIOS, DEFAULT_PREFERRED_WIDTH, RATIO_TOLERANCE
from ..domain.errors import (
    FileTooLargeError,
    UnsupportedDurationError,
    UnsupportedRatioError,
)
from ..domain.models import (
    CompatibilityReport,
    MediaProbeResult,
    Network,
    NetworkConstraint,
    TranscodePlan,
)

logger = structlog.get_logger(__name__)

AUDIO_BITRATE_KBPS = 128
MIN_VIDEO_BITRATE_KBPS = 500
SIZE_HEADROOM = 0.95


class MediaCompatibilityAdvisor:
    """Pure policy object deciding whether media needs transcoding.

    ``evaluate`` never touches the filesystem; the same probe and constraint
    always yield the same report, which keeps retries deterministic.
    """

    def __init__(self, *, ratio_tolerance: float = RATIO_TOLERANCE) -> None:
        self._ratio_tolerance = ratio_tolerance

    def evaluate(
        self,
        probe: MediaProbeResult,
        constraint: NetworkConstraint | None,
    ) -> CompatibilityReport:
        if constraint is None:
            return CompatibilityReport(compliant=True)

        trim_seconds: float | None = None
        bitrate: tuple[int, int, int] | None = None
        target: tuple[int, int, str] | None = None

        if probe.duration_seconds > constraint.max_duration_seconds:
            trim_seconds = constraint.max_duration_seconds

        if probe.size_bytes > constraint.max_size_bytes:
            effective_duration = probe.duration_seconds
            # the size budget applies to the trimmed output, not the source
            if trim_seconds is not None:
                effective_duration = min(effective_duration, trim_seconds)
            bitrate = self._bitrates_for(constraint.max_size_mb, effective_duration)

        if not self.ratio_supported(probe.ratio, constraint.supported_ratios):
            label = self.closest_ratio(probe.ratio, constraint.supported_ratios)
            if label is not None:
                width, height = self.target_dimensions(
                    label, constraint.preferred_width or DEFAULT_PREFERRED_WIDTH
                )
                target = (width, height, label)

        if trim_seconds is None and bitrate is None and target is None:
            return CompatibilityReport(compliant=True)

        plan = TranscodePlan(
            trim_seconds=trim_seconds,
            video_bitrate_kbps=bitrate[0] if bitrate else None,
            max_bitrate_kbps=bitrate[1] if bitrate else None,
            buffer_size_kbps=bitrate[2] if bitrate else None,
            target_width=target[0] if target else None,
            target_height=target[1] if target else None,
            target_ratio=target[2] if target else None,
        )
        return CompatibilityReport(compliant=False, plan=plan)

    def verify(
        self,
        probe: MediaProbeResult,
        constraint: NetworkConstraint | None,
        network: Network,
    ) -> None:
        """Raise the matching :class:`PublishError` if ``probe`` still violates limits."""

        if constraint is None:
            return
        base = {"network": network.value}
        if probe.duration_seconds > constraint.max_duration_seconds:
            raise UnsupportedDurationError(
                f"video is too long for {network.value}",
                details={
                    **base,
                    "duration_seconds": probe.duration_seconds,
                    "max_duration_seconds": constraint.max_duration_seconds,
                },
            )
        if (
            constraint.min_duration_seconds
            and probe.duration_seconds < constraint.min_duration_seconds
        ):
            raise UnsupportedDurationError(
                f"video is too short for {network.value}",
                details={
                    **base,
                    "duration_seconds": probe.duration_seconds,
                    "min_duration_seconds": constraint.min_duration_seconds,
                },
            )
        if probe.size_bytes > constraint.max_size_bytes:
            raise FileTooLargeError(
                f"video file is too large for {network.value}",
                details={
                    **base,
                    "size_bytes": probe.size_bytes,
                    "max_size_mb": constraint.max_size_mb,
                },
            )
        if not self.ratio_supported(probe.ratio, constraint.supported_ratios):
            raise UnsupportedRatioError(
                f"aspect ratio {probe.aspect_label} is not supported by {network.value}",
                details={
                    **base,
                    "current_ratio": probe.aspect_label,
                    "supported_ratios": list(constraint.supported_ratios),
                },
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def ratio_supported(self, ratio: float, supported: Sequence[str]) -> bool:
        for label in supported:
            value = ASPECT_RATIOS.get(label)
            if value is not None and abs(ratio - value) <= self._ratio_tolerance:
                return True
        return False

    @staticmethod
    def closest_ratio(ratio: float, supported: Sequence[str]) -> str | None:
        best_label: str | None = None
        best_diff = float("inf")
        for label in supported:
            value = ASPECT_RATIOS.get(label)
            if value is None:
                logger.warning("compatibility.unknown_ratio", ratio=label)
                continue
            diff = abs(ratio - value)
            # strict comparison keeps the first ratio on ties
            if diff < best_diff:
                best_label, best_diff = label, diff
        return best_label

    @staticmethod
    def target_dimensions(label: str, preferred_width: int) -> tuple[int, int]:
        ratio = ASPECT_RATIOS[label]
        if ratio < 1:
            height = preferred_width
            width = height * ratio
        else:
            width = preferred_width
            height = width / ratio
        return _even(width), _even(height)

    @staticmethod
    def _bitrates_for(max_size_mb: float, duration_seconds: float) -> tuple[int, int, int]:
        if duration_seconds > 0:
            total_kbps = (max_size_mb * 8 * 1024 * SIZE_HEADROOM) / duration_seconds
            video_kbps = max(MIN_VIDEO_BITRATE_KBPS, total_kbps - AUDIO_BITRATE_KBPS)
        else:
            video_kbps = MIN_VIDEO_BITRATE_KBPS
        video = int(round(video_kbps))
        return video, int(round(video * 1.2)), video * 2


def _even(value: float) -> int:
    return max(2, int(round(value / 2)) * 2)


__all__ = ["MediaCompatibilityAdvisor"]
