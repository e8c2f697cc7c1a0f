"""Lifecycle helpers wiring the orchestrator into FastAPI startup."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from .workers.orchestrator import JobOrchestrator

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class BackgroundOrchestrator:
    """Handle on the running dispatch loop."""

    task: asyncio.Task[None]
    shutdown_event: asyncio.Event

    async def stop(self, *, timeout_seconds: float | None = None) -> None:
        """Signal shutdown and wait for in-flight jobs to finish."""

        self.shutdown_event.set()
        try:
            await asyncio.wait_for(asyncio.shield(self.task), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("orchestrator.stop_timeout", timeout_seconds=timeout_seconds)
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass


async def _run_orchestrator(
    orchestrator: JobOrchestrator, shutdown_event: asyncio.Event
) -> None:
    logger.info("orchestrator.started")
    try:
        await orchestrator.run_forever(shutdown_event=shutdown_event)
    except asyncio.CancelledError:  # pragma: no cover - shutdown path
        raise
    except Exception:
        logger.exception("orchestrator.crashed")
        raise
    logger.info("orchestrator.stopped")


def start_orchestrator(orchestrator: JobOrchestrator) -> BackgroundOrchestrator:
    """Start ``orchestrator.run_forever`` as a background task."""

    shutdown_event = asyncio.Event()
    task = asyncio.create_task(
        _run_orchestrator(orchestrator, shutdown_event), name="job-orchestrator"
    )
    return BackgroundOrchestrator(task=task, shutdown_event=shutdown_event)


__all__ = ["BackgroundOrchestrator", "start_orchestrator"]
