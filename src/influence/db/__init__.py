"""Database models and schema helpers."""

from .db_init import init_db
from .db_models import Base, PublishingJobModel

__all__ = ["Base", "PublishingJobModel", "init_db"]
