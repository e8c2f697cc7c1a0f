"""Offline publisher used when the aggregator runs in mock mode."""

from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Awaitable, Callable

import structlog

from ..domain.errors import (
    MissingPublisherCredentialsError,
    PublisherNetworkError,
    PublisherRejectedError,
)
from ..domain.models import PublishOutcome
from .base import Publisher, PublishPayload

logger = structlog.get_logger(__name__)


class SimulatedPublisher(Publisher):
    """Pretend to publish after a delay, failing at a configurable rate.

    The failure budget is split evenly between four modes: a raised network
    error, an authentication failure, a content rejection and a rate limit.
    """

    def __init__(
        self,
        *,
        delay_seconds: float = 3.0,
        failure_rate: float = 0.4,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._delay_seconds = max(0.0, delay_seconds)
        self._failure_rate = min(1.0, max(0.0, failure_rate))
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep

    async def publish(self, payload: PublishPayload) -> PublishOutcome:
        network = payload.network
        logger.info(
            "publisher.simulated.publish",
            network=network.value,
            media_ref=payload.media_ref,
        )
        if self._delay_seconds:
            await self._sleep(self._delay_seconds)

        roll = self._rng.random()
        step = self._failure_rate / 4
        details = {"network": network.value, "simulated": True}
        if roll < step:
            raise PublisherNetworkError(
                "simulated network connectivity issue", details=details
            )
        if roll < step * 2:
            error = MissingPublisherCredentialsError(
                "simulated authentication failure", details=details
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())
        if roll < step * 3:
            error = PublisherRejectedError(
                "simulated content rejection", details=details
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())
        if roll < self._failure_rate:
            error = PublisherNetworkError(
                "simulated rate limit exceeded",
                details={**details, "reason": "rate_limited"},
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())

        return PublishOutcome(
            network=network,
            success=True,
            published_id=f"mock_post_id_{network.value}_{int(time.time() * 1000)}",
        )


def create_simulated_publisher(*, config: dict | None = None) -> SimulatedPublisher:
    cfg = config or {}
    return SimulatedPublisher(
        delay_seconds=float(cfg.get("delay_seconds", 3.0)),
        failure_rate=float(cfg.get("failure_rate", 0.4)),
    )


__all__ = ["SimulatedPublisher", "create_simulated_publisher"]
