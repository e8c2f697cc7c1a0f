"""Dependency wiring for the publishing service."""

from __future__ import annotations

from dataclasses import dataclass

from .config import AppConfig, DatabaseRuntime, build_database
from .infrastructure.sqlalchemy_job_store import SqlAlchemyJobStore
from .media.compatibility import MediaCompatibilityAdvisor
from .media.transcoder import FfmpegTranscoder
from .publishers.aggregator import create_aggregator_publisher
from .publishers.registry import PublisherRegistry
from .services.job_service import JobService
from .workers.orchestrator import JobOrchestrator
from .workers.retry_policy import RetryPolicy


@dataclass(slots=True)
class Container:
    config: AppConfig
    database: DatabaseRuntime
    store: SqlAlchemyJobStore
    job_service: JobService
    orchestrator: JobOrchestrator


def build_publisher_registry(config: AppConfig) -> PublisherRegistry:
    """Route every network through the aggregator unless a native publisher is registered."""
    registry = PublisherRegistry()
    registry.register_fallback(
        create_aggregator_publisher,
        config={
            "api_key": config.aggregator_api_key,
            "base_url": config.aggregator_base_url,
            "timeout_seconds": config.publisher_timeout_seconds,
        },
    )
    return registry


def build_container(config: AppConfig) -> Container:
    database = build_database(config)
    store = SqlAlchemyJobStore(database.session_factory)
    orchestrator = JobOrchestrator(
        store=store,
        transcoder=FfmpegTranscoder(
            ffmpeg_path=config.ffmpeg_path,
            ffprobe_path=config.ffprobe_path,
            timeout_seconds=config.transcode_timeout_seconds,
        ),
        publishers=build_publisher_registry(config),
        advisor=MediaCompatibilityAdvisor(),
        retry_policy=RetryPolicy.from_delays(config.retry_delays_seconds),
        work_dir=config.work_dir,
        poll_interval=config.poll_interval_seconds,
        max_concurrent_jobs=config.max_concurrent_jobs,
    )
    return Container(
        config=config,
        database=database,
        store=store,
        job_service=JobService(store),
        orchestrator=orchestrator,
    )


__all__ = ["Container", "build_container", "build_publisher_registry"]
