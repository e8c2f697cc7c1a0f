"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base declarative class."""


class PublishingJobModel(Base):
    __tablename__ = "publishing_job"
    __table_args__ = (
        Index("ix_publishing_job_due", "status", "scheduled_for", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    media_ref: Mapped[str] = mapped_column(String(1024), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    networks: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    schedule_time: Mapped[datetime | None] = mapped_column(DateTime)
    # naive UTC timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime | None] = mapped_column(DateTime)
    error: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    published_urls: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
