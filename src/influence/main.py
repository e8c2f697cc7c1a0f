"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from .api.errors import ApiError, api_error_handler
from .api.routes import publish_router
from .config import AppConfig, load_config
from .container import Container, build_container
from .lifecycle import start_orchestrator
from .logging import configure_logging


def create_app(
    config: AppConfig | None = None,
    *,
    container: Container | None = None,
) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    cfg = config or (container.config if container is not None else load_config())
    configure_logging(cfg.log_level, json=cfg.log_json)
    services = container or build_container(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        background = None
        if cfg.run_orchestrator:
            background = start_orchestrator(services.orchestrator)
        try:
            yield
        finally:
            if background is not None:
                await background.stop()
            services.database.engine.dispose()

    app = FastAPI(title="Influence Publisher", lifespan=lifespan)
    app.state.config = cfg
    app.state.container = services
    app.state.job_service = services.job_service
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    app.include_router(publish_router)
    return app


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run("src.influence.main:create_app", factory=True, host="0.0.0.0", port=8000)


__all__ = ["create_app", "run"]
