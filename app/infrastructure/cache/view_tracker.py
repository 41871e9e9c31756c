"""View dedup caches.

A view by the same viewer on the same material increments the counter at most
once per dedup window.  Both backends are best effort: losing entries only
causes extra counts, never corrupt data.

``InMemoryViewTracker`` is process-local and constructed once at startup.
Deployments running several API processes should use ``RedisViewTracker`` so
the window is shared across instances.
"""

import logging
import threading
import time
from typing import Callable
from uuid import UUID

import redis.asyncio as aioredis

from app.domain.repositories import IViewTracker

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 30.0
DEFAULT_RETENTION_SECONDS = 60.0
LOCK_STRIPES = 64

VIEW_KEY_PREFIX = "view:"


def view_key(material_id: UUID, viewer_identity: str) -> str:
    return f"{material_id}:{viewer_identity}"


class InMemoryViewTracker(IViewTracker):
    """Map of ``(material, viewer)`` to last counted time, guarded per key.

    Keys are spread over a fixed set of lock stripes, so unrelated viewers
    never contend on one global lock.  Entries older than *retention* are
    swept opportunistically on each call.
    """

    def __init__(
        self,
        window: float = DEFAULT_WINDOW_SECONDS,
        retention: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if retention < window:
            raise ValueError("retention must be at least the dedup window")
        self.window = window
        self.retention = retention
        self.clock = clock
        self._seen: dict[str, float] = {}
        self._stripes = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def __len__(self) -> int:
        return len(self._seen)

    def _lock_for(self, key: str) -> threading.Lock:
        return self._stripes[hash(key) % LOCK_STRIPES]

    async def register_view(self, material_id: UUID, viewer_identity: str) -> bool:
        return self.should_count(view_key(material_id, viewer_identity))

    def should_count(self, key: str) -> bool:
        now = self.clock()
        self._sweep(now)
        with self._lock_for(key):
            last = self._seen.get(key)
            if last is not None and now - last <= self.window:
                return False
            self._seen[key] = now
            return True

    def _sweep(self, now: float) -> None:
        for key, last in list(self._seen.items()):
            if now - last <= self.retention:
                continue
            with self._lock_for(key):
                # Re-check under the lock; the entry may have been refreshed.
                current = self._seen.get(key)
                if current is not None and now - current > self.retention:
                    del self._seen[key]


class RedisViewTracker(IViewTracker):
    """Shared dedup window backed by ``SET key 1 NX EX window``."""

    def __init__(self, client: aioredis.Redis, window: int = int(DEFAULT_WINDOW_SECONDS)):
        self.client = client
        self.window = window

    async def register_view(self, material_id: UUID, viewer_identity: str) -> bool:
        key = f"{VIEW_KEY_PREFIX}{view_key(material_id, viewer_identity)}"
        try:
            created = await self.client.set(key, "1", nx=True, ex=self.window)
        except Exception as exc:
            logger.warning("View cache unavailable, counting view on %s: %s", material_id, exc)
            return True
        return bool(created)
