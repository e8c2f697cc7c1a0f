"""Domain models for the video publishing pipeline.

Jobs are created by the submission service and mutated only by the
orchestrator (or the manual retry operation). Probe results, publish
outcomes and transcode plans are ephemeral values that never reach the
store directly. All timestamps are timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import uuid4

from ..exceptions import InvalidRequestError


class JobStatus(str, Enum):
    """Lifecycle states of a publishing job.

    ``queued`` jobs are eligible for dispatch once ``scheduled_for`` has
    passed, ``processing`` marks a job claimed by the orchestrator. The
    remaining states are terminal and never re-enqueued automatically.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.PUBLISHED, JobStatus.FAILED, JobStatus.CANCELED}
)


class Network(str, Enum):
    """Social networks the publisher can target."""

    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    FACEBOOK = "facebook"
    X = "x"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(str(value)))
    except ValueError as exc:
        raise InvalidRequestError(f"invalid timestamp: {value!r}") from exc


def _parse_networks(values: Iterable[Any]) -> tuple[Network, ...]:
    networks: list[Network] = []
    for raw in values:
        try:
            network = raw if isinstance(raw, Network) else Network(str(raw).lower())
        except ValueError as exc:
            raise InvalidRequestError(f"unsupported network: {raw!r}") from exc
        if network not in networks:
            networks.append(network)
    return tuple(networks)


@dataclass(frozen=True, slots=True)
class PublishRequest:
    """Immutable description of what should be published where."""

    media_ref: str
    title: str
    networks: tuple[Network, ...]
    description: str | None = None
    schedule_time: datetime | None = None

    def __post_init__(self) -> None:
        if not self.media_ref or not self.media_ref.strip():
            raise InvalidRequestError("media_ref must not be empty")
        if not self.title or not self.title.strip():
            raise InvalidRequestError("title must not be empty")
        networks = _parse_networks(self.networks)
        if not networks:
            raise InvalidRequestError("at least one network is required")
        object.__setattr__(self, "networks", networks)
        object.__setattr__(self, "schedule_time", ensure_utc(self.schedule_time))

    def to_payload(self) -> dict[str, Any]:
        return {
            "media_ref": self.media_ref,
            "title": self.title,
            "description": self.description,
            "networks": [network.value for network in self.networks],
            "schedule_time": (
                self.schedule_time.isoformat() if self.schedule_time else None
            ),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PublishRequest":
        networks = payload.get("networks") or ()
        if isinstance(networks, (str, bytes)):
            raise InvalidRequestError("networks must be a list")
        return cls(
            media_ref=str(payload.get("media_ref") or ""),
            title=str(payload.get("title") or ""),
            description=payload.get("description"),
            networks=tuple(networks),
            schedule_time=_parse_datetime(payload.get("schedule_time")),
        )


@dataclass(slots=True)
class JobError:
    """Error captured on a job after a failed attempt."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "JobError | None":
        if not payload:
            return None
        return cls(
            code=str(payload.get("code") or ""),
            message=str(payload.get("message") or ""),
            details=dict(payload.get("details") or {}),
        )


@dataclass(slots=True)
class Job:
    """Durable publishing job persisted by :class:`JobStore`."""

    id: str
    request: PublishRequest
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    scheduled_for: datetime | None = None
    retry_count: int = 0
    last_attempt: datetime | None = None
    error: JobError | None = None
    published_urls: dict[str, str] = field(default_factory=dict)

    @classmethod
    def new(cls, request: PublishRequest, *, now: datetime | None = None) -> "Job":
        created = ensure_utc(now) or utcnow()
        return cls(
            id=uuid4().hex,
            request=request,
            status=JobStatus.QUEUED,
            created_at=created,
            updated_at=created,
            scheduled_for=request.schedule_time,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request": self.request.to_payload(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "scheduled_for": (
                self.scheduled_for.isoformat() if self.scheduled_for else None
            ),
            "retry_count": self.retry_count,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "error": self.error.to_dict() if self.error else None,
            "published_urls": dict(self.published_urls),
        }


@dataclass(frozen=True, slots=True)
class NetworkConstraint:
    """Technical limits a network imposes on uploaded video."""

    max_duration_seconds: float
    max_size_mb: float
    supported_ratios: tuple[str, ...]
    preferred_width: int
    min_duration_seconds: float = 0.0

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


@dataclass(frozen=True, slots=True)
class MediaProbeResult:
    width: int
    height: int
    duration_seconds: float
    size_bytes: int

    @property
    def ratio(self) -> float:
        if self.height <= 0:
            return 0.0
        return self.width / self.height

    @property
    def aspect_label(self) -> str:
        return f"{self.width}:{self.height}"


@dataclass(slots=True)
class PublishOutcome:
    network: Network
    success: bool
    published_id: str | None = None
    error: JobError | None = None


@dataclass(frozen=True, slots=True)
class TranscodePlan:
    """Ordered transcode directives derived from a compatibility check.

    ``options`` renders the plan as ffmpeg arguments: trim first, then the
    bitrate directives, then the scale/pad filter. An empty plan means the
    media can be published as is.
    """

    trim_seconds: float | None = None
    video_bitrate_kbps: int | None = None
    max_bitrate_kbps: int | None = None
    buffer_size_kbps: int | None = None
    target_width: int | None = None
    target_height: int | None = None
    target_ratio: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.options

    @property
    def video_filter(self) -> str | None:
        if self.target_width is None or self.target_height is None:
            return None
        w, h = self.target_width, self.target_height
        return (
            f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2"
        )

    @property
    def options(self) -> list[str]:
        args: list[str] = []
        if self.trim_seconds is not None:
            args.extend(["-t", _format_seconds(self.trim_seconds)])
        if self.video_bitrate_kbps is not None:
            args.extend(["-b:v", f"{self.video_bitrate_kbps}k"])
            if self.max_bitrate_kbps is not None:
                args.extend(["-maxrate", f"{self.max_bitrate_kbps}k"])
            if self.buffer_size_kbps is not None:
                args.extend(["-bufsize", f"{self.buffer_size_kbps}k"])
        video_filter = self.video_filter
        if video_filter is not None:
            args.extend(["-vf", video_filter])
        return args


def _format_seconds(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}".rstrip("0").rstrip(".")


@dataclass(frozen=True, slots=True)
class CompatibilityReport:
    compliant: bool
    plan: TranscodePlan = field(default_factory=TranscodePlan)


__all__ = [
    "CompatibilityReport",
    "Job",
    "JobError",
    "JobStatus",
    "MediaProbeResult",
    "Network",
    "NetworkConstraint",
    "PublishOutcome",
    "PublishRequest",
    "TERMINAL_STATUSES",
    "TranscodePlan",
    "ensure_utc",
    "utcnow",
]
