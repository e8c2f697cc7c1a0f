"""Network publishers and the registry resolving them."""

from .aggregator import AggregatorPublisher, create_aggregator_publisher
from .base import Publisher, PublisherFactory, PublishPayload
from .registry import PublisherRegistry
from .simulated import SimulatedPublisher, create_simulated_publisher

__all__ = [
    "AggregatorPublisher",
    "Publisher",
    "PublisherFactory",
    "PublisherRegistry",
    "PublishPayload",
    "SimulatedPublisher",
    "create_aggregator_publisher",
    "create_simulated_publisher",
]
