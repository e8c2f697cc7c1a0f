"""Error taxonomy for the publishing pipeline.

Every failure that can end up on a job is a :class:`PublishError` carrying a
stable :class:`ErrorCode`, a human readable message and structured details.
``to_job_error`` converts it into the persisted :class:`JobError` record.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Mapping

import httpx

from ..exceptions import AppError
from .models import JobError


class ErrorCode(str, Enum):
    UNSUPPORTED_RATIO = "PUBLISH-VIDEO-UNSUPPORTED_RATIO"
    UNSUPPORTED_DURATION = "PUBLISH-VIDEO-UNSUPPORTED_DURATION"
    FILE_TOO_LARGE = "PUBLISH-VIDEO-FILE_TOO_LARGE"
    PROBE_FAILED = "PUBLISH-VIDEO-PROBE_FAILED"
    TRANSCODE_FAILED = "PUBLISH-VIDEO-FFMPEG_ERROR"
    UPLOAD_FAILED = "PUBLISH-VIDEO-UPLOAD_FAILED"
    NETWORK_ERROR = "PUBLISH-VIDEO-NETWORK_ERROR"
    MISSING_CREDENTIALS = "PUBLISH-VIDEO-MISSING_CREDENTIALS"
    PUBLISHER_REJECTED = "PUBLISH-VIDEO-AGGREGATOR_ERROR"
    UNKNOWN = "PUBLISH-UNKNOWN-ERROR"


class PublishError(AppError):
    """Base class for failures recorded on publishing jobs."""

    code: ErrorCode = ErrorCode.UNKNOWN
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        details: Mapping[str, Any] | None = None,
        code: ErrorCode | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable

    def to_job_error(self) -> JobError:
        return JobError(
            code=self.code.value,
            message=self.message,
            details=dict(self.details),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = self.to_job_error().to_dict()
        payload["retryable"] = self.retryable
        return payload


class ProbeError(PublishError):
    code = ErrorCode.PROBE_FAILED


class TranscodeError(PublishError):
    code = ErrorCode.TRANSCODE_FAILED


class TranscoderUnavailableError(TranscodeError):
    """The transcoding tool could not be launched at all."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        merged = {"reason": "tool_unavailable", **dict(details or {})}
        super().__init__(message, details=merged, retryable=True)


class UnsupportedRatioError(PublishError):
    code = ErrorCode.UNSUPPORTED_RATIO


class UnsupportedDurationError(PublishError):
    code = ErrorCode.UNSUPPORTED_DURATION


class FileTooLargeError(PublishError):
    code = ErrorCode.FILE_TOO_LARGE


class MissingPublisherCredentialsError(PublishError):
    code = ErrorCode.MISSING_CREDENTIALS


class PublisherNetworkError(PublishError):
    code = ErrorCode.NETWORK_ERROR


class PublisherRejectedError(PublishError):
    code = ErrorCode.PUBLISHER_REJECTED


class UploadFailedError(PublishError):
    code = ErrorCode.UPLOAD_FAILED


class UnknownPublishError(PublishError):
    code = ErrorCode.UNKNOWN


class PublishAggregateError(PublishError):
    """One or more networks failed during a publish fan-out.

    ``code`` and ``message`` follow the first failing network in request
    order; ``details`` lists every failure and the networks that succeeded.
    """

    code = ErrorCode.UPLOAD_FAILED


def error_from_exception(exc: BaseException, **details: Any) -> PublishError:
    """Normalise an arbitrary exception into a :class:`PublishError`."""

    if isinstance(exc, PublishError):
        if details:
            exc.details = {**details, **exc.details}
        return exc
    if isinstance(exc, httpx.TransportError):
        return PublisherNetworkError(
            f"network error: {exc}",
            details={**details, "exception": type(exc).__name__},
        )
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return PublisherNetworkError(
            "operation timed out",
            details={**details, "exception": type(exc).__name__},
        )
    return UnknownPublishError(
        str(exc) or type(exc).__name__,
        details={**details, "exception": type(exc).__name__},
    )


__all__ = [
    "ErrorCode",
    "FileTooLargeError",
    "MissingPublisherCredentialsError",
    "ProbeError",
    "PublishAggregateError",
    "PublishError",
    "PublisherNetworkError",
    "PublisherRejectedError",
    "TranscodeError",
    "TranscoderUnavailableError",
    "UnknownPublishError",
    "UnsupportedDurationError",
    "UnsupportedRatioError",
    "UploadFailedError",
    "error_from_exception",
]
