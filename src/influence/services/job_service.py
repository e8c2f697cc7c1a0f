"""Submission boundary for publishing jobs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Sequence

import structlog

from ..domain.models import Job, JobStatus, PublishRequest, utcnow
from ..exceptions import InvalidJobStateError, JobNotFoundError
from ..infrastructure.job_store import JobStore

logger = structlog.get_logger(__name__)


class JobService:
    """Create, inspect and manually retry publishing jobs.

    The service never executes jobs itself; it only writes ``queued``
    records that the orchestrator picks up.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or utcnow

    def submit(self, request: PublishRequest) -> Job:
        job = Job.new(request, now=self._clock())
        stored = self._store.insert(job)
        logger.info(
            "job.submitted",
            job_id=stored.id,
            networks=[network.value for network in request.networks],
            scheduled_for=stored.scheduled_for.isoformat() if stored.scheduled_for else None,
        )
        return stored

    def get_job(self, job_id: str) -> Job | None:
        try:
            return self._store.get(job_id)
        except JobNotFoundError:
            return None

    def list_failed(self) -> Sequence[Job]:
        """Return failed jobs ordered by ``updated_at``."""

        return self._store.find_by_status(JobStatus.FAILED)

    def retry_job(self, job_id: str) -> Job:
        """Put a failed job back in the queue for immediate dispatch.

        The retry counter is kept as is; the error and schedule are cleared.
        """

        job = self._store.get(job_id)
        if job.status is not JobStatus.FAILED:
            raise InvalidJobStateError(
                f"job '{job_id}' is {job.status.value}; only failed jobs can be retried"
            )
        updated = self._store.update_status(
            job_id,
            JobStatus.QUEUED,
            {"error": None, "scheduled_for": None},
            expected_status=JobStatus.FAILED,
        )
        logger.info("job.manual_retry", job_id=job_id, retry_count=updated.retry_count)
        return updated


__all__ = ["JobService"]
