# app/services/view_cache.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import redis.asyncio as redis

from app.config import REDIS_URL, VIEW_DEDUP_TTL_SECONDS


@dataclass(frozen=True)
class ViewRecord:
    already_counted: bool


def view_key(namespace: str, content_id, client_id: str) -> str:
    return f"viewed:{namespace}:{content_id}:{client_id}"


class ViewDeduplicationCache(Protocol):
    async def record_view(self, content_id, client_id: str) -> ViewRecord: ...


class MemoryViewCache:
    """Per-process TTL store. Fine for a single worker and for tests."""

    def __init__(
        self,
        namespace: str = "post",
        ttl_seconds: int = VIEW_DEDUP_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expires: Dict[str, float] = {}

    def _purge(self, now: float) -> None:
        # cheap sweep so the dict doesn't grow forever
        if len(self._expires) > 10_000:
            self._expires = {k: v for k, v in self._expires.items() if v > now}

    async def record_view(self, content_id, client_id: str) -> ViewRecord:
        key = view_key(self.namespace, content_id, client_id)
        now = self._clock()
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at > now:
            return ViewRecord(already_counted=True)

        self._purge(now)
        self._expires[key] = now + self.ttl_seconds
        return ViewRecord(already_counted=False)


class RedisViewCache:
    """Shared across workers. SET NX EX is a single atomic check-and-set."""

    def __init__(
        self,
        client: "redis.Redis",
        namespace: str = "post",
        ttl_seconds: int = VIEW_DEDUP_TTL_SECONDS,
    ):
        self.client = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    async def record_view(self, content_id, client_id: str) -> ViewRecord:
        key = view_key(self.namespace, content_id, client_id)
        was_set = await self.client.set(key, "1", ex=self.ttl_seconds, nx=True)
        return ViewRecord(already_counted=not was_set)


def build_view_cache(namespace: str = "post", url: Optional[str] = REDIS_URL) -> ViewDeduplicationCache:
    if url:
        return RedisViewCache(redis.from_url(url), namespace=namespace)
    return MemoryViewCache(namespace=namespace)
