"""Routes for submitting and inspecting publishing jobs."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from ...domain.models import PublishRequest
from ...exceptions import (
    InvalidJobStateError,
    InvalidRequestError,
    JobNotFoundError,
    StaleJobStateError,
)
from ...services.job_service import JobService
from ..errors import invalid_request_error, job_not_found_error, job_state_conflict_error
from ..schemas import (
    FailedJobsResponse,
    JobAcceptedResponse,
    JobPayload,
    JobStatusResponse,
    PublishJobRequest,
)

router = APIRouter(prefix="/api/publish", tags=["publish"])


def get_job_service(request: Request) -> JobService:
    """Fetch the job service from application state."""
    try:
        return request.app.state.job_service  # type: ignore[attr-defined]
    except AttributeError as exc:
        raise RuntimeError("JobService is not configured") from exc


@router.post(
    "",
    response_model=JobAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def submit_publish_job(
    payload: PublishJobRequest,
    service: JobService = Depends(get_job_service),
) -> JobAcceptedResponse:
    try:
        request = PublishRequest(
            media_ref=payload.media_ref,
            title=payload.title,
            description=payload.description,
            networks=tuple(payload.networks),
            schedule_time=payload.schedule_time,
        )
    except InvalidRequestError as exc:
        raise invalid_request_error(str(exc)) from exc
    job = service.submit(request)
    return JobAcceptedResponse(job_id=job.id, status=job.status.value)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
def get_publish_status(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> JobStatusResponse:
    job = service.get_job(job_id)
    if job is None:
        raise job_not_found_error(job_id)
    return JobStatusResponse(job=JobPayload.from_job(job))


@router.get("/failed", response_model=FailedJobsResponse)
def list_failed_jobs(
    service: JobService = Depends(get_job_service),
) -> FailedJobsResponse:
    return FailedJobsResponse(
        jobs=[JobPayload.from_job(job) for job in service.list_failed()]
    )


@router.post("/retry/{job_id}", response_model=JobAcceptedResponse)
def retry_publish_job(
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> JobAcceptedResponse:
    try:
        job = service.retry_job(job_id)
    except JobNotFoundError as exc:
        raise job_not_found_error(job_id) from exc
    except (InvalidJobStateError, StaleJobStateError) as exc:
        raise job_state_conflict_error(str(exc), job_id=job_id) from exc
    return JobAcceptedResponse(job_id=job.id, status=job.status.value)
