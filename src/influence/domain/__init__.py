"""Domain layer: models, constraints and the error taxonomy."""

from .constraints import NETWORK_CONSTRAINTS, constraint_for
from .errors import ErrorCode, PublishError, error_from_exception
from .models import (
    CompatibilityReport,
    Job,
    JobError,
    JobStatus,
    MediaProbeResult,
    Network,
    NetworkConstraint,
    PublishOutcome,
    PublishRequest,
    TranscodePlan,
)

__all__ = [
    "CompatibilityReport",
    "ErrorCode",
    "Job",
    "JobError",
    "JobStatus",
    "MediaProbeResult",
    "NETWORK_CONSTRAINTS",
    "Network",
    "NetworkConstraint",
    "PublishError",
    "PublishOutcome",
    "PublishRequest",
    "TranscodePlan",
    "constraint_for",
    "error_from_exception",
]
