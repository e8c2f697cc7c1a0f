"""Pydantic schemas for the publishing API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..domain.models import Job, Network


class PublishJobRequest(BaseModel):
    media_ref: str = Field(..., min_length=1, description="Path of the source video.")
    title: str = Field(..., min_length=1)
    description: str | None = None
    networks: list[Network] = Field(..., min_length=1)
    schedule_time: datetime | None = Field(
        default=None, description="Earliest time the job may be dispatched."
    )


class JobAcceptedResponse(BaseModel):
    job_id: str
    status: str


class JobErrorPayload(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class JobPayload(BaseModel):
    id: str
    status: str
    media_ref: str
    title: str
    description: str | None
    networks: list[str]
    schedule_time: datetime | None
    created_at: datetime
    updated_at: datetime
    scheduled_for: datetime | None
    retry_count: int
    last_attempt: datetime | None
    error: JobErrorPayload | None
    published_urls: dict[str, str]

    @classmethod
    def from_job(cls, job: Job) -> "JobPayload":
        return cls(
            id=job.id,
            status=job.status.value,
            media_ref=job.request.media_ref,
            title=job.request.title,
            description=job.request.description,
            networks=[network.value for network in job.request.networks],
            schedule_time=job.request.schedule_time,
            created_at=job.created_at,
            updated_at=job.updated_at,
            scheduled_for=job.scheduled_for,
            retry_count=job.retry_count,
            last_attempt=job.last_attempt,
            error=JobErrorPayload(**job.error.to_dict()) if job.error else None,
            published_urls=dict(job.published_urls),
        )


class JobStatusResponse(BaseModel):
    job: JobPayload


class FailedJobsResponse(BaseModel):
    jobs: list[JobPayload]
