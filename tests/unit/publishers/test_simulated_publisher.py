from __future__ import annotations

import pytest

from src.influence.domain.errors import ErrorCode, PublisherNetworkError
from src.influence.domain.models import Network
from src.influence.publishers.base import PublishPayload
from src.influence.publishers.simulated import SimulatedPublisher, create_simulated_publisher


class FixedRandom:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


PAYLOAD = PublishPayload(media_ref="/v.mp4", title="t", network=Network.INSTAGRAM)


@pytest.mark.asyncio
async def test_success_waits_for_simulated_delay() -> None:
    sleep = RecordingSleep()
    publisher = SimulatedPublisher(delay_seconds=3.0, rng=FixedRandom(0.99), sleep=sleep)

    outcome = await publisher.publish(PAYLOAD)

    assert outcome.success is True
    assert sleep.calls == [3.0]


@pytest.mark.asyncio
async def test_lowest_band_raises_network_error() -> None:
    publisher = SimulatedPublisher(delay_seconds=0, failure_rate=0.4, rng=FixedRandom(0.05))

    with pytest.raises(PublisherNetworkError):
        await publisher.publish(PAYLOAD)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("roll", "code"),
    [
        (0.15, ErrorCode.MISSING_CREDENTIALS),
        (0.25, ErrorCode.PUBLISHER_REJECTED),
        (0.35, ErrorCode.NETWORK_ERROR),
    ],
)
async def test_failure_bands_return_failed_outcomes(roll: float, code: ErrorCode) -> None:
    publisher = SimulatedPublisher(delay_seconds=0, failure_rate=0.4, rng=FixedRandom(roll))

    outcome = await publisher.publish(PAYLOAD)

    assert outcome.success is False
    assert outcome.error.code == code.value
    assert outcome.error.details["simulated"] is True


@pytest.mark.asyncio
async def test_zero_failure_rate_always_succeeds() -> None:
    publisher = SimulatedPublisher(delay_seconds=0, failure_rate=0.0, rng=FixedRandom(0.0))

    outcome = await publisher.publish(PAYLOAD)

    assert outcome.success is True


@pytest.mark.asyncio
async def test_factory_applies_config() -> None:
    publisher = create_simulated_publisher(config={"delay_seconds": 0, "failure_rate": 0})

    outcome = await publisher.publish(PAYLOAD)

    assert outcome.success is True
    assert outcome.published_id.startswith("mock_post_id_instagram_")
