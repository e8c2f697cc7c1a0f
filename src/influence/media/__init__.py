"""Media inspection, compatibility policy and transcoding."""

from .compatibility import MediaCompatibilityAdvisor
from .transcoder import FfmpegTranscoder, MediaTranscoder, output_path_for

__all__ = [
    "FfmpegTranscoder",
    "MediaCompatibilityAdvisor",
    "MediaTranscoder",
    "output_path_for",
]
