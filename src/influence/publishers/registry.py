"""Registry mapping networks to publisher factories."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import structlog

from ..domain.models import Network
from .base import Publisher, PublisherFactory

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class PublisherRegistry:
    """Resolve the publisher responsible for a network.

    Native factories win over the fallback (usually the aggregator). A
    network with neither resolves to ``None`` and the orchestrator records a
    missing-credentials failure for it. Instances are created on first use
    and cached until :meth:`aclose`.
    """

    factories: Dict[Network, PublisherFactory] = field(default_factory=dict)
    configs: Dict[Network, Mapping[str, Any]] = field(default_factory=dict)
    fallback: PublisherFactory | None = None
    fallback_config: Mapping[str, Any] | None = None
    _instances: Dict[Network, Publisher] = field(
        default_factory=dict, init=False, repr=False
    )
    _fallback_instance: Publisher | None = field(default=None, init=False, repr=False)

    def register(
        self,
        network: Network,
        factory: PublisherFactory,
        *,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        self.factories[network] = factory
        if config is not None:
            self.configs[network] = dict(config)
        self._instances.pop(network, None)

    def register_fallback(
        self,
        factory: PublisherFactory,
        *,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        self.fallback = factory
        self.fallback_config = dict(config) if config is not None else None
        self._fallback_instance = None

    def resolve(self, network: Network) -> Publisher | None:
        instance = self._instances.get(network)
        if instance is not None:
            return instance
        factory = self.factories.get(network)
        if factory is not None:
            config = self.configs.get(network)
            instance = _build(factory, config)
            self._instances[network] = instance
            return instance
        if self.fallback is None:
            return None
        if self._fallback_instance is None:
            self._fallback_instance = _build(self.fallback, self.fallback_config)
        return self._fallback_instance

    async def aclose(self) -> None:
        publishers: list[Publisher] = list(self._instances.values())
        if self._fallback_instance is not None:
            publishers.append(self._fallback_instance)
        self._instances.clear()
        self._fallback_instance = None
        results = await asyncio.gather(
            *(publisher.aclose() for publisher in publishers),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning("publisher.close_failed", error=repr(result))


def _build(factory: PublisherFactory, config: Mapping[str, Any] | None) -> Publisher:
    instance = factory(config=dict(config) if config is not None else None)
    if not isinstance(instance, Publisher):
        raise TypeError("publisher factory returned unexpected type")
    return instance


__all__ = ["PublisherRegistry"]
