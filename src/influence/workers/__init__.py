"""Background workers executing publishing jobs."""

from .claims import ClaimRegistry
from .orchestrator import JobOrchestrator
from .retry_policy import DEFAULT_RETRY_DELAYS, RetryPolicy

__all__ = ["ClaimRegistry", "DEFAULT_RETRY_DELAYS", "JobOrchestrator", "RetryPolicy"]
