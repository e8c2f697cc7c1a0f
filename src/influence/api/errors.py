"""Reusable error primitives for API exception handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from fastapi import Request, status
from fastapi.responses import JSONResponse


@dataclass(slots=True)
class ApiError(Exception):
    """Structured application-level error for HTTP handlers."""

    status_code: int
    code: str
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] | None = None

    def to_response(self) -> JSONResponse:
        """Materialise the error into a ``JSONResponse`` instance."""

        return JSONResponse(
            status_code=self.status_code,
            content={
                "error": {
                    "code": self.code,
                    "message": self.message,
                    "details": dict(self.details),
                }
            },
            headers=dict(self.headers or {}),
        )


async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    """Convert :class:`ApiError` exceptions into JSON payloads."""

    return exc.to_response()


def invalid_request_error(message: str) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "GENERAL-INVALID_PARAMS", message)


def job_not_found_error(job_id: str) -> ApiError:
    return ApiError(
        status.HTTP_404_NOT_FOUND,
        "PUBLISH-JOB-NOT_FOUND",
        f"job '{job_id}' not found",
        details={"job_id": job_id},
    )


def job_state_conflict_error(message: str, *, job_id: str) -> ApiError:
    return ApiError(
        status.HTTP_409_CONFLICT,
        "PUBLISH-JOB-INVALID_STATE",
        message,
        details={"job_id": job_id},
    )


__all__ = [
    "ApiError",
    "api_error_handler",
    "invalid_request_error",
    "job_not_found_error",
    "job_state_conflict_error",
]
