"""Per-network technical limits and the aspect ratio table."""

from __future__ import annotations

from typing import Mapping

from .models import Network, NetworkConstraint

ASPECT_RATIOS: Mapping[str, float] = {
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "1:1": 1.0,
    "4:5": 4 / 5,
}

RATIO_TOLERANCE = 0.01
DEFAULT_PREFERRED_WIDTH = 1280

NETWORK_CONSTRAINTS: Mapping[Network, NetworkConstraint] = {
    Network.YOUTUBE: NetworkConstraint(
        max_duration_seconds=12 * 60 * 60,
        max_size_mb=256 * 1024,
        supported_ratios=("16:9", "1:1", "9:16"),
        preferred_width=1920,
    ),
    Network.INSTAGRAM: NetworkConstraint(
        max_duration_seconds=15 * 60,
        max_size_mb=650,
        supported_ratios=("1:1", "4:5", "9:16", "16:9"),
        preferred_width=1080,
    ),
    Network.TIKTOK: NetworkConstraint(
        max_duration_seconds=10 * 60,
        max_size_mb=2000,
        supported_ratios=("9:16", "1:1"),
        preferred_width=1080,
    ),
    Network.FACEBOOK: NetworkConstraint(
        max_duration_seconds=4 * 60 * 60,
        max_size_mb=10 * 1024,
        supported_ratios=("16:9", "1:1", "9:16"),
        preferred_width=1920,
    ),
    Network.X: NetworkConstraint(
        max_duration_seconds=140,
        max_size_mb=512,
        supported_ratios=("16:9", "1:1", "9:16"),
        preferred_width=1280,
    ),
}


def constraint_for(network: Network | str) -> NetworkConstraint | None:
    try:
        key = network if isinstance(network, Network) else Network(network)
    except ValueError:
        return None
    return NETWORK_CONSTRAINTS.get(key)
