from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from marketlens.config import settings
from marketlens.errors import AdmissionRejectedError
from marketlens.services import logger as log_service


class AdmissionController:
    """Bounded admission for pipeline runs.

    A run above the ceiling is rejected at once, never queued. Owned by the
    caller; the pipeline itself knows nothing about other runs.
    """

    def __init__(self, max_concurrent: int | None = None):
        limit = settings.max_concurrent_runs if max_concurrent is None else max_concurrent
        self.max_concurrent = max(int(limit), 1)
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._active: set[str] = set()

    @property
    def active_runs(self) -> list[str]:
        return sorted(self._active)

    @property
    def active(self) -> int:
        return len(self._active)

    def stats(self) -> dict[str, int]:
        return {
            "active": self.active,
            "maxConcurrent": self.max_concurrent,
            "available": self.max_concurrent - self.active,
        }

    @asynccontextmanager
    async def admit(self, run_id: str) -> AsyncIterator[None]:
        # Checked and acquired without yielding to the loop, so two callers
        # cannot both take the last slot.
        if self._semaphore.locked():
            log_service.log_event(
                event_type="run_rejected",
                message="Concurrency ceiling reached",
                level="WARNING",
                run_id=run_id,
                active=self.active,
                limit=self.max_concurrent,
            )
            raise AdmissionRejectedError(self.active, self.max_concurrent)

        await self._semaphore.acquire()
        self._active.add(run_id)
        try:
            yield
        finally:
            self._active.discard(run_id)
            self._semaphore.release()
