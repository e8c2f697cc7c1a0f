"""Backoff schedule for failed publishing attempts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (5.0, 30.0, 120.0, 600.0)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Map an incremented retry counter to the delay before the next attempt.

    A job may be retried ``len(delays_seconds)`` times; the attempt after
    that marks it failed.
    """

    delays_seconds: tuple[float, ...] = DEFAULT_RETRY_DELAYS

    @classmethod
    def from_delays(cls, delays: Sequence[float]) -> "RetryPolicy":
        return cls(tuple(max(0.0, float(delay)) for delay in delays))

    @property
    def max_retries(self) -> int:
        return len(self.delays_seconds)

    def next_delay(self, retry_count: int) -> float | None:
        """Return the delay for ``retry_count`` or ``None`` once exhausted."""

        if 1 <= retry_count <= len(self.delays_seconds):
            return self.delays_seconds[retry_count - 1]
        return None
