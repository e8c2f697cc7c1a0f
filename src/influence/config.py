"""Application configuration.

Settings are read from ``INFLUENCE_*`` environment variables. The retry
schedule defaults to 5 seconds, 30 seconds, 2 minutes and 10 minutes; the
dispatch loop ticks every 5 seconds. A SQLite database is used unless
``INFLUENCE_DATABASE_URL`` points elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .db.db_init import init_db


def _default_work_dir() -> Path:
    return Path("./var/work")


class AppConfig(BaseSettings):
    """Pydantic settings container for the publishing service."""

    model_config = SettingsConfigDict(env_prefix="INFLUENCE_")

    database_url: str = Field(
        default="sqlite:///influence.db",
        description="SQLAlchemy URL of the job store database.",
    )
    work_dir: Path = Field(
        default_factory=_default_work_dir,
        description="Root directory for per-job transcoding artifacts.",
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Delay between dispatch ticks when no job is due.",
    )
    max_concurrent_jobs: int = Field(
        default=4,
        ge=1,
        description="Upper bound on jobs executing at the same time.",
    )
    retry_delays_seconds: list[float] = Field(
        default_factory=lambda: [5.0, 30.0, 120.0, 600.0],
        description="Backoff schedule; its length is the retry budget.",
    )
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable.")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable.")
    transcode_timeout_seconds: float | None = Field(
        default=None,
        description="Kill ffmpeg/ffprobe after this many seconds when set.",
    )
    aggregator_api_key: str | None = Field(
        default=None,
        description="Aggregator API key; MOCK_API_KEY enables simulated publishing.",
    )
    aggregator_base_url: str = Field(
        default="https://app.ayrshare.com/api",
        description="Base URL of the aggregator API.",
    )
    publisher_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for publisher requests.",
    )
    run_orchestrator: bool = Field(
        default=True,
        description="Start the dispatch loop together with the HTTP app.",
    )
    log_level: str = Field(default="INFO", description="Root log level.")
    log_json: bool = Field(default=True, description="Render logs as JSON lines.")


@dataclass(slots=True)
class DatabaseRuntime:
    engine: Engine
    session_factory: sessionmaker[Session]


def load_config() -> AppConfig:
    """Load configuration from the environment."""
    return AppConfig()


def build_database(config: AppConfig) -> DatabaseRuntime:
    """Create the engine and session factory and ensure the schema exists."""
    connect_args = {}
    if config.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(config.database_url, future=True, connect_args=connect_args)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)
    return DatabaseRuntime(engine=engine, session_factory=session_factory)


__all__ = ["AppConfig", "DatabaseRuntime", "build_database", "load_config"]
