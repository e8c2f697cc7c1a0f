"""In-process registry of job ids currently being executed."""

from __future__ import annotations

import asyncio


class ClaimRegistry:
    """Set of claimed job ids guarded by an :class:`asyncio.Lock`.

    A job id stays claimed from dispatch until its execution task finishes,
    so the dispatch loop never starts the same job twice.
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()
        self._lock = asyncio.Lock()

    async def try_claim(self, job_id: str) -> bool:
        async with self._lock:
            if job_id in self._claimed:
                return False
            self._claimed.add(job_id)
            return True

    async def release(self, job_id: str) -> None:
        async with self._lock:
            self._claimed.discard(job_id)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)
