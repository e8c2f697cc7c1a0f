"""Persistence adapters for publishing jobs."""

from .job_store import JobStore
from .sqlalchemy_job_store import SqlAlchemyJobStore

__all__ = ["JobStore", "SqlAlchemyJobStore"]
