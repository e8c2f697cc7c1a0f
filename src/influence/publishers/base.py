"""Publisher capability implemented by every network integration.

A publisher uploads one media reference to exactly one network and reports
the result as a :class:`PublishOutcome`. Implementations may either return
a failed outcome or raise a :class:`PublishError`; the orchestrator turns
both into per-network failures without affecting sibling networks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..domain.models import Network, PublishOutcome


@dataclass(frozen=True, slots=True)
class PublishPayload:
    media_ref: str
    title: str
    network: Network
    description: str | None = None


class Publisher(ABC):
    """Abstract adapter hiding a network specific upload API."""

    @abstractmethod
    async def publish(self, payload: PublishPayload) -> PublishOutcome:
        """Upload ``payload.media_ref`` to ``payload.network``."""

    async def aclose(self) -> None:
        """Release network resources held by the publisher."""


@runtime_checkable
class PublisherFactory(Protocol):
    """Factory building a publisher lazily on first use."""

    def __call__(self, *, config: dict | None = None) -> Publisher:
        ...


__all__ = ["Publisher", "PublisherFactory", "PublishPayload"]
