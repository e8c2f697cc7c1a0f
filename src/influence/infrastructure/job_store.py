"""Repository interface for durable publishing jobs."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from ..domain.models import Job, JobStatus

MUTABLE_FIELDS = frozenset(
    {"scheduled_for", "retry_count", "last_attempt", "error", "published_urls"}
)


def validate_patch(patch: Mapping[str, Any] | None) -> dict[str, Any]:
    """Reject patch keys that do not name a mutable job field."""

    data = dict(patch or {})
    unknown = set(data) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"unsupported job fields in patch: {sorted(unknown)}")
    return data


class JobStore:
    """Persistence gateway for publishing jobs.

    Every write refreshes ``updated_at``. Lookups of unknown identifiers
    raise :class:`~src.influence.exceptions.JobNotFoundError`. A status update
    with ``expected_status`` only applies while the stored status still
    matches, otherwise :class:`~src.influence.exceptions.StaleJobStateError`
    is raised; the orchestrator relies on it to claim queued jobs safely.
    """

    def insert(self, job: Job) -> Job:
        """Persist a freshly created job."""

        raise NotImplementedError

    def get(self, job_id: str) -> Job:
        raise NotImplementedError

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        patch: Mapping[str, Any] | None = None,
        *,
        expected_status: JobStatus | None = None,
    ) -> Job:
        """Set ``status`` and apply ``patch`` atomically."""

        raise NotImplementedError

    def update_patch(self, job_id: str, patch: Mapping[str, Any]) -> Job:
        raise NotImplementedError

    def find_by_status_in(self, statuses: Iterable[JobStatus]) -> Sequence[Job]:
        """Return jobs in any of ``statuses`` ordered by ``created_at``."""

        raise NotImplementedError

    def find_due_queued(self, now: datetime, *, limit: int | None = None) -> Sequence[Job]:
        """Return queued jobs whose ``scheduled_for`` is empty or not after ``now``.

        Results are ordered oldest first by ``created_at``.
        """

        raise NotImplementedError

    def find_by_status(self, status: JobStatus) -> Sequence[Job]:
        """Return jobs in ``status`` ordered by ``updated_at``."""

        raise NotImplementedError
