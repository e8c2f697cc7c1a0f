"""SQLAlchemy implementation of :class:`JobStore`."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from ..db.db_models import PublishingJobModel
from ..domain.models import (
    Job,
    JobError,
    JobStatus,
    PublishRequest,
    ensure_utc,
    utcnow,
)
from ..exceptions import JobNotFoundError, StaleJobStateError, handle_sqlalchemy_errors
from .job_store import JobStore, validate_patch


def _to_db(value: datetime | None) -> datetime | None:
    """Store timestamps as naive UTC."""
    aware = ensure_utc(value)
    return aware.replace(tzinfo=None) if aware is not None else None


class SqlAlchemyJobStore(JobStore):
    """Persist publishing jobs in a relational database."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow

    def insert(self, job: Job) -> Job:
        with handle_sqlalchemy_errors(entity="publishing_job"):
            with self._session_factory() as session:
                model = PublishingJobModel(id=job.id)
                self._apply_request(model, job.request)
                model.status = job.status.value
                model.created_at = _to_db(job.created_at)
                model.updated_at = _to_db(job.updated_at)
                self._apply_patch(
                    model,
                    {
                        "scheduled_for": job.scheduled_for,
                        "retry_count": job.retry_count,
                        "last_attempt": job.last_attempt,
                        "error": job.error,
                        "published_urls": job.published_urls,
                    },
                )
                session.add(model)
                session.commit()
                return self._to_domain(model)

    def get(self, job_id: str) -> Job:
        with handle_sqlalchemy_errors(entity="publishing_job"):
            with self._session_factory() as session:
                model = session.get(PublishingJobModel, job_id)
                if model is None:
                    raise JobNotFoundError(job_id)
                return self._to_domain(model)

    def update_status(
        self,
        job_id: str,
        status: JobStatus,
        patch: Mapping[str, Any] | None = None,
        *,
        expected_status: JobStatus | None = None,
    ) -> Job:
        values = self._column_values(validate_patch(patch))
        values["status"] = status.value
        values["updated_at"] = _to_db(self._clock())

        with handle_sqlalchemy_errors(entity="publishing_job"):
            with self._session_factory() as session:
                stmt = update(PublishingJobModel).where(PublishingJobModel.id == job_id)
                if expected_status is not None:
                    stmt = stmt.where(PublishingJobModel.status == expected_status.value)
                result = session.execute(stmt.values(**values))
                if result.rowcount == 0:
                    session.rollback()
                    current = session.get(PublishingJobModel, job_id)
                    if current is None:
                        raise JobNotFoundError(job_id)
                    raise StaleJobStateError(
                        job_id,
                        expected=expected_status.value if expected_status else "any",
                        actual=current.status,
                    )
                session.commit()
                model = session.get(PublishingJobModel, job_id, populate_existing=True)
                if model is None:
                    raise JobNotFoundError(job_id)
                return self._to_domain(model)

    def update_patch(self, job_id: str, patch: Mapping[str, Any]) -> Job:
        data = validate_patch(patch)
        with handle_sqlalchemy_errors(entity="publishing_job"):
            with self._session_factory() as session:
                model = session.get(PublishingJobModel, job_id)
                if model is None:
                    raise JobNotFoundError(job_id)
                self._apply_patch(model, data)
                model.updated_at = _to_db(self._clock())
                session.commit()
                return self._to_domain(model)

    def find_by_status_in(self, statuses: Iterable[JobStatus]) -> Sequence[Job]:
        values = [status.value for status in statuses]
        if not values:
            return []
        stmt = (
            select(PublishingJobModel)
            .where(PublishingJobModel.status.in_(values))
            .order_by(PublishingJobModel.created_at, PublishingJobModel.id)
        )
        return self._fetch(stmt)

    def find_due_queued(self, now: datetime, *, limit: int | None = None) -> Sequence[Job]:
        cutoff = _to_db(now)
        stmt = (
            select(PublishingJobModel)
            .where(PublishingJobModel.status == JobStatus.QUEUED.value)
            .where(
                or_(
                    PublishingJobModel.scheduled_for.is_(None),
                    PublishingJobModel.scheduled_for <= cutoff,
                )
            )
            .order_by(PublishingJobModel.created_at, PublishingJobModel.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def find_by_status(self, status: JobStatus) -> Sequence[Job]:
        stmt = (
            select(PublishingJobModel)
            .where(PublishingJobModel.status == status.value)
            .order_by(PublishingJobModel.updated_at, PublishingJobModel.id)
        )
        return self._fetch(stmt)

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------
    def _fetch(self, stmt) -> list[Job]:
        with handle_sqlalchemy_errors(entity="publishing_job"):
            with self._session_factory() as session:
                return [self._to_domain(model) for model in session.scalars(stmt)]

    @staticmethod
    def _apply_request(model: PublishingJobModel, request: PublishRequest) -> None:
        model.media_ref = request.media_ref
        model.title = request.title
        model.description = request.description
        model.networks = [network.value for network in request.networks]
        model.schedule_time = _to_db(request.schedule_time)

    @classmethod
    def _apply_patch(cls, model: PublishingJobModel, patch: Mapping[str, Any]) -> None:
        for column, value in cls._column_values(patch).items():
            setattr(model, column, value)

    @staticmethod
    def _column_values(patch: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in patch.items():
            if key in ("scheduled_for", "last_attempt"):
                values[key] = _to_db(value)
            elif key == "error":
                values[key] = value.to_dict() if isinstance(value, JobError) else value
            elif key == "published_urls":
                values[key] = dict(value or {})
            else:
                values[key] = value
        return values

    @staticmethod
    def _to_domain(model: PublishingJobModel) -> Job:
        request = PublishRequest(
            media_ref=model.media_ref,
            title=model.title,
            description=model.description,
            networks=tuple(model.networks or ()),
            schedule_time=ensure_utc(model.schedule_time),
        )
        return Job(
            id=model.id,
            request=request,
            status=JobStatus(model.status),
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
            scheduled_for=ensure_utc(model.scheduled_for),
            retry_count=model.retry_count or 0,
            last_attempt=ensure_utc(model.last_attempt),
            error=JobError.from_dict(model.error),
            published_urls=dict(model.published_urls or {}),
        )


__all__ = ["SqlAlchemyJobStore"]
