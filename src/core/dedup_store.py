"""
Dedup Window Store — admit-once-per-window semantics for dedup keys.

`admit(key)` returns True the first time a key is presented while no live
record exists, and False for every repeat inside the window. Expiry is
re-checked on every lookup; the background sweep only reclaims memory.

Backends:
    memory  process-local dict (single web process)
    redis   SET NX EX, shared between the web process and the Celery poller
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


@dataclass
class DedupRecord:
    key: str
    expires_at: float

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class DedupStore(ABC):
    """Atomic admit-once set with expiry."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def admit(self, key: str, ttl: float | None = None) -> bool:
        """Return True if the key is new (proceed), False if it is a duplicate."""

    @abstractmethod
    async def forget(self, key: str) -> None:
        """Drop a key so the next delivery of the event is admitted again."""

    async def sweep(self) -> int:
        """Purge expired records. Returns the number of records removed."""
        return 0

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Periodic sweep loop; run as a background task and cancel on shutdown."""
        interval = min(interval_seconds, self.ttl_seconds)
        while True:
            await asyncio.sleep(interval)
            try:
                removed = await self.sweep()
                if removed:
                    logger.debug("Dedup sweep removed %s expired keys", removed)
            except Exception:
                logger.exception("Dedup sweep failed")

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryDedupStore(DedupStore):
    """
    Process-local store. A restart forgets all history.

    admit() never awaits between the check and the set, so concurrent tasks on
    the same event loop cannot both win admission for one key.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._records: dict[str, DedupRecord] = {}

    async def admit(self, key: str, ttl: float | None = None) -> bool:
        now = self._clock()
        record = self._records.get(key)
        if record is not None and record.is_live(now):
            return False

        window = self.ttl_seconds if ttl is None else ttl
        self._records[key] = DedupRecord(key=key, expires_at=now + window)
        return True

    async def forget(self, key: str) -> None:
        self._records.pop(key, None)

    async def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, record in self._records.items() if not record.is_live(now)]
        for key in expired:
            self._records.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class RedisDedupStore(DedupStore):
    """Shared store backed by Redis; keys expire server-side, so sweep is a no-op."""

    KEY_PREFIX = "relay:dedup:"

    def __init__(self, redis_url: str, ttl_seconds: float = DEFAULT_TTL_SECONDS, client=None):
        super().__init__(ttl_seconds)
        if client is None:
            from redis.asyncio import Redis

            client = Redis.from_url(redis_url)
        self._redis = client

    async def admit(self, key: str, ttl: float | None = None) -> bool:
        window = self.ttl_seconds if ttl is None else ttl
        created = await self._redis.set(
            f"{self.KEY_PREFIX}{key}",
            "1",
            nx=True,
            ex=max(1, int(window)),
        )
        return bool(created)

    async def forget(self, key: str) -> None:
        await self._redis.delete(f"{self.KEY_PREFIX}{key}")

    async def close(self) -> None:
        await self._redis.aclose()


def build_dedup_store(backend: str, ttl_seconds: float, redis_url: str = "") -> DedupStore:
    """
    Factory: create a dedup store by backend name.

    Raises:
        ValueError: If backend is not "memory" or "redis".
    """
    if backend == "memory":
        return InMemoryDedupStore(ttl_seconds=ttl_seconds)
    if backend == "redis":
        return RedisDedupStore(redis_url, ttl_seconds=ttl_seconds)
    raise ValueError(f"Unknown dedup backend: '{backend}'. Available: memory, redis")
