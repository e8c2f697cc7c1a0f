"""Publisher delegating uploads to a multi-network aggregator API."""

from __future__ import annotations

from typing import Any, Mapping

import httpx
import structlog

from ..domain.errors import (
    MissingPublisherCredentialsError,
    PublisherNetworkError,
    PublisherRejectedError,
)
from ..domain.models import Network, PublishOutcome
from .base import Publisher, PublishPayload
from .simulated import SimulatedPublisher

logger = structlog.get_logger(__name__)

MOCK_API_KEY = "MOCK_API_KEY"
DEFAULT_BASE_URL = "https://app.ayrshare.com/api"

PLATFORM_NAMES: Mapping[Network, str] = {
    Network.YOUTUBE: "youtube",
    Network.INSTAGRAM: "instagram",
    Network.TIKTOK: "tiktok",
    Network.FACEBOOK: "facebook",
    Network.X: "twitter",
}


class AggregatorPublisher(Publisher):
    """Call the aggregator's ``/post`` endpoint for a single network.

    Missing credentials and explicit rejections come back as failed
    outcomes; throttling, server errors and transport failures raise
    :class:`PublisherNetworkError` so the orchestrator retries the job.
    ``MOCK_API_KEY`` switches to :class:`SimulatedPublisher`.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30.0,
        simulated: SimulatedPublisher | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._simulated = simulated
        if api_key == MOCK_API_KEY and simulated is None:
            self._simulated = SimulatedPublisher()

    @property
    def is_mock(self) -> bool:
        return self._api_key == MOCK_API_KEY

    async def publish(self, payload: PublishPayload) -> PublishOutcome:
        network = payload.network
        if not self._api_key:
            error = MissingPublisherCredentialsError(
                "aggregator API key is not configured",
                details={"network": network.value},
                retryable=False,
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())
        if self.is_mock and self._simulated is not None:
            return await self._simulated.publish(payload)

        platform = PLATFORM_NAMES[network]
        body: dict[str, Any] = {
            "post": payload.description or payload.title,
            "title": payload.title,
            "platforms": [platform],
            "mediaUrls": [payload.media_ref],
        }
        if network is Network.YOUTUBE:
            body["youTubeOptions"] = {"title": payload.title, "video": payload.media_ref}

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(
                    f"{self._base_url}/post", headers=headers, json=body
                )
        except httpx.TransportError as exc:
            raise PublisherNetworkError(
                f"aggregator request failed: {exc}",
                details={"network": network.value, "exception": type(exc).__name__},
            ) from exc

        return self._interpret(network, platform, response)

    def _interpret(
        self, network: Network, platform: str, response: httpx.Response
    ) -> PublishOutcome:
        status_code = response.status_code
        details: dict[str, Any] = {"network": network.value, "status_code": status_code}

        if status_code in (401, 403):
            error = MissingPublisherCredentialsError(
                "aggregator rejected the API key", details=details, retryable=False
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())
        if status_code == 429 or status_code >= 500:
            raise PublisherNetworkError(
                f"aggregator responded with status {status_code}", details=details
            )

        data = _json_body(response)
        if status_code >= 400 or data.get("status") not in (None, "success"):
            message = str(data.get("message") or f"aggregator error {status_code}")
            logger.warning(
                "publisher.aggregator.rejected",
                network=network.value,
                status_code=status_code,
            )
            error = PublisherRejectedError(
                message, details={**details, "response": data}, retryable=False
            )
            return PublishOutcome(network=network, success=False, error=error.to_job_error())

        post_ids = data.get("postIds") or data.get("post_ids") or {}
        published_id = None
        if isinstance(post_ids, Mapping):
            published_id = post_ids.get(platform) or post_ids.get(network.value)
        if published_id is None and data.get("id") is not None:
            published_id = data["id"]
        return PublishOutcome(
            network=network,
            success=True,
            published_id=str(published_id) if published_id is not None else None,
        )


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def create_aggregator_publisher(*, config: dict | None = None) -> AggregatorPublisher:
    cfg = config or {}
    simulated = None
    if cfg.get("api_key") == MOCK_API_KEY:
        simulated = SimulatedPublisher(
            delay_seconds=float(cfg.get("mock_delay_seconds", 3.0)),
            failure_rate=float(cfg.get("mock_failure_rate", 0.4)),
        )
    return AggregatorPublisher(
        api_key=cfg.get("api_key"),
        base_url=str(cfg.get("base_url") or DEFAULT_BASE_URL),
        timeout_seconds=float(cfg.get("timeout_seconds", 30.0)),
        simulated=simulated,
    )


__all__ = [
    "AggregatorPublisher",
    "MOCK_API_KEY",
    "PLATFORM_NAMES",
    "create_aggregator_publisher",
]
