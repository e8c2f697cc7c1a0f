"""Job orchestrator driving publishing jobs through their lifecycle."""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar

import structlog

from ..domain.constraints import NETWORK_CONSTRAINTS
from ..domain.errors import (
    ErrorCode,
    MissingPublisherCredentialsError,
    PublishAggregateError,
    PublishError,
    TranscodeError,
    UploadFailedError,
    error_from_exception,
)
from ..domain.models import (
    Job,
    JobStatus,
    MediaProbeResult,
    Network,
    NetworkConstraint,
    PublishOutcome,
    utcnow,
)
from ..exceptions import StaleJobStateError
from ..infrastructure.job_store import JobStore
from ..media.compatibility import MediaCompatibilityAdvisor
from ..media.transcoder import MediaTranscoder, output_path_for
from ..publishers.base import PublishPayload
from ..publishers.registry import PublisherRegistry
from .claims import ClaimRegistry
from .retry_policy import RetryPolicy

T = TypeVar("T")

logger = structlog.get_logger(__name__)

_KNOWN_CODES = {member.value: member for member in ErrorCode}


class JobOrchestrator:
    """Claims due jobs, prepares media per network and fans out publishing.

    Store calls are blocking and run in a worker thread. Each claimed job
    executes in its own task; the number of tasks is capped by
    ``max_concurrent_jobs``.
    """

    def __init__(
        self,
        *,
        store: JobStore,
        transcoder: MediaTranscoder,
        publishers: PublisherRegistry,
        work_dir: Path,
        advisor: MediaCompatibilityAdvisor | None = None,
        constraints: Mapping[Network, NetworkConstraint] | None = None,
        retry_policy: RetryPolicy | None = None,
        poll_interval: float = 5.0,
        max_concurrent_jobs: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.transcoder = transcoder
        self.publishers = publishers
        self.advisor = advisor or MediaCompatibilityAdvisor()
        self.retry_policy = retry_policy or RetryPolicy()
        self._constraints = dict(NETWORK_CONSTRAINTS if constraints is None else constraints)
        self._work_dir = Path(work_dir)
        self._poll_interval = max(0.01, poll_interval)
        self._max_concurrent_jobs = max(1, max_concurrent_jobs)
        self._clock = clock or utcnow
        self._claims = ClaimRegistry()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @staticmethod
    async def _run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Execute ``func`` in a worker thread to avoid blocking the event loop."""

        return await asyncio.to_thread(func, *args, **kwargs)

    @property
    def claims(self) -> ClaimRegistry:
        return self._claims

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # High-level control flow
    # ------------------------------------------------------------------
    async def recover(self) -> int:
        """Return queued and interrupted jobs to ``queued``.

        Runs on startup: jobs left ``processing`` by a crashed process are
        re-enqueued so at-least-once delivery holds. Jobs claimed by this
        process are left alone.
        """

        jobs = await self._run_sync(
            self.store.find_by_status_in, (JobStatus.QUEUED, JobStatus.PROCESSING)
        )
        recovered = 0
        for job in jobs:
            if job.id in self._claims:
                continue
            await self._run_sync(self.store.update_status, job.id, JobStatus.QUEUED)
            recovered += 1
            if job.status is JobStatus.PROCESSING:
                logger.warning("job.recovered", job_id=job.id)
        logger.info("orchestrator.recovery_finished", jobs=recovered)
        return recovered

    async def dispatch_once(self, *, now: datetime | None = None) -> bool:
        """Claim the oldest due job and start executing it in the background."""

        if self._closed or len(self._tasks) >= self._max_concurrent_jobs:
            return False
        current = now or self._clock()
        candidates = await self._run_sync(
            self.store.find_due_queued,
            current,
            limit=self._max_concurrent_jobs + len(self._claims),
        )
        for job in candidates:
            if not await self._claims.try_claim(job.id):
                continue
            task = asyncio.create_task(
                self._execute_claimed(job), name=f"publish-job-{job.id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            logger.info("job.dispatched", job_id=job.id, retry_count=job.retry_count)
            return True
        return False

    async def run_forever(self, *, shutdown_event: asyncio.Event) -> None:
        """Recover, then dispatch due jobs until ``shutdown_event`` is set."""

        try:
            await self.recover()
            while not shutdown_event.is_set():
                try:
                    while await self.dispatch_once():
                        pass
                except Exception:
                    logger.exception("orchestrator.tick_failed")
                try:
                    await asyncio.wait_for(
                        shutdown_event.wait(), timeout=self._poll_interval
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            await self.drain()
            await self.aclose()

    async def run_until_idle(self) -> None:
        """Dispatch due jobs batch by batch until nothing is due or running."""

        while True:
            while await self.dispatch_once():
                pass
            if not self._tasks:
                return
            await self.drain()

    async def drain(self) -> None:
        """Wait for every in-flight job task to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.publishers.aclose()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------
    async def _execute_claimed(self, job: Job) -> None:
        try:
            await self.execute_job(job)
        except Exception:
            logger.exception("job.execution_crashed", job_id=job.id)
        finally:
            await self._claims.release(job.id)

    async def execute_job(self, job: Job) -> Job | None:
        """Run one attempt of ``job``; returns the stored job afterwards.

        Returns ``None`` when the job was no longer queued, e.g. canceled
        between dispatch and start.
        """

        started_at = self._clock()
        try:
            job = await self._run_sync(
                self.store.update_status,
                job.id,
                JobStatus.PROCESSING,
                {"last_attempt": started_at},
                expected_status=JobStatus.QUEUED,
            )
        except StaleJobStateError as exc:
            logger.info("job.skipped", job_id=job.id, status=exc.actual)
            return None

        with structlog.contextvars.bound_contextvars(job_id=job.id):
            logger.info(
                "job.started",
                networks=[network.value for network in job.request.networks],
                attempt=job.retry_count + 1,
            )
            work_dir = self._work_dir / job.id
            try:
                media_ref = await self._preprocess(job, work_dir)
                outcomes = await self._publish_all(job, media_ref)
                self._aggregate(outcomes)
            except Exception as exc:
                return await self._handle_failure(job, error_from_exception(exc))
            finally:
                await self._run_sync(shutil.rmtree, work_dir, True)

            published_urls = {
                outcome.network.value: outcome.published_id or ""
                for outcome in outcomes
            }
            updated = await self._run_sync(
                self.store.update_status,
                job.id,
                JobStatus.PUBLISHED,
                {"published_urls": published_urls, "error": None, "scheduled_for": None},
            )
            logger.info("job.published", networks=list(published_urls))
            return updated

    async def _preprocess(self, job: Job, work_dir: Path) -> str:
        """Return the single media reference every network publishes.

        Networks are visited in request order against one working reference,
        starting with the source. A network whose limits the current media
        violates gets a transcoded copy of it, which then becomes the working
        reference for the following networks. Every network's constraint is
        verified against the current media before anything is published.
        """

        current_ref = job.request.media_ref
        current_probe: MediaProbeResult | None = None
        for network in job.request.networks:
            constraint = self._constraints.get(network)
            try:
                if current_probe is None:
                    current_probe = await self.transcoder.probe(current_ref)
                report = self.advisor.evaluate(current_probe, constraint)
                if not report.compliant:
                    output_path = output_path_for(work_dir, job.request.media_ref, network)
                    logger.info(
                        "job.transcode_planned",
                        network=network.value,
                        input=current_ref,
                        options=report.plan.options,
                    )
                    current_ref = await self.transcoder.transcode(
                        current_ref, report.plan, output_path=str(output_path)
                    )
                    current_probe = await self.transcoder.probe(current_ref)
                self.advisor.verify(current_probe, constraint, network)
            except PublishError as exc:
                exc.details.setdefault("network", network.value)
                raise
            except Exception as exc:
                raise TranscodeError(
                    str(exc) or type(exc).__name__,
                    details={"network": network.value, "exception": type(exc).__name__},
                ) from exc
        return current_ref

    async def _publish_all(self, job: Job, media_ref: str) -> list[PublishOutcome]:
        return list(
            await asyncio.gather(
                *(
                    self._publish_one(job, network, media_ref)
                    for network in job.request.networks
                )
            )
        )

    async def _publish_one(
        self, job: Job, network: Network, media_ref: str
    ) -> PublishOutcome:
        """Publish to one network; failures become failed outcomes."""

        payload = PublishPayload(
            media_ref=media_ref,
            title=job.request.title,
            description=job.request.description,
            network=network,
        )
        try:
            publisher = self.publishers.resolve(network)
            if publisher is None:
                error = MissingPublisherCredentialsError(
                    f"no publisher configured for {network.value}",
                    details={"network": network.value},
                )
                return PublishOutcome(
                    network=network, success=False, error=error.to_job_error()
                )
            outcome = await publisher.publish(payload)
        except Exception as exc:
            error = error_from_exception(exc, network=network.value)
            logger.warning(
                "job.publish_failed", network=network.value, code=error.code.value
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())

        if not outcome.success and outcome.error is None:
            outcome.error = UploadFailedError(
                f"publishing to {network.value} failed",
                details={"network": network.value},
            ).to_job_error()
        return outcome

    @staticmethod
    def _aggregate(outcomes: list[PublishOutcome]) -> None:
        failures = [outcome for outcome in outcomes if not outcome.success]
        if not failures:
            return
        first = failures[0]
        code = ErrorCode.UPLOAD_FAILED
        message = "upload failed"
        if first.error is not None:
            message = first.error.message
            code = _KNOWN_CODES.get(first.error.code, ErrorCode.UPLOAD_FAILED)
        raise PublishAggregateError(
            f"publishing to {first.network.value} failed: {message}",
            code=code,
            details={
                "failed_networks": [outcome.network.value for outcome in failures],
                "succeeded_networks": [
                    outcome.network.value for outcome in outcomes if outcome.success
                ],
                "errors": [
                    {
                        "network": outcome.network.value,
                        "code": outcome.error.code if outcome.error else None,
                        "message": outcome.error.message if outcome.error else None,
                        "details": dict(outcome.error.details) if outcome.error else {},
                    }
                    for outcome in failures
                ],
            },
        )

    async def _handle_failure(self, job: Job, error: PublishError) -> Job:
        retry_count = job.retry_count + 1
        delay = self.retry_policy.next_delay(retry_count)
        patch: dict[str, Any] = {
            "retry_count": retry_count,
            "error": error.to_job_error(),
        }
        if delay is None:
            patch["scheduled_for"] = None
            updated = await self._run_sync(
                self.store.update_status, job.id, JobStatus.FAILED, patch
            )
            logger.error(
                "job.failed",
                code=error.code.value,
                message=error.message,
                retry_count=retry_count,
            )
            return updated

        patch["scheduled_for"] = self._clock() + timedelta(seconds=delay)
        updated = await self._run_sync(
            self.store.update_status, job.id, JobStatus.QUEUED, patch
        )
        logger.warning(
            "job.retry_scheduled",
            code=error.code.value,
            message=error.message,
            retry_count=retry_count,
            delay_seconds=delay,
        )
        return updated


__all__ = ["JobOrchestrator"]
