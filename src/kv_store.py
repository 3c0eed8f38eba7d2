"""
Key-value stores for the global prompt and per-session conversation records.

Both stores expose the same three calls (get / set / exists) with optional
per-key expiry. Redis is the durable backend; MemoryStore keeps everything in
process and is used for local runs and tests.
"""

import logging
import threading
import time
from dataclasses import dataclass

import redis

logger = logging.getLogger(__name__)


class RedisStore:
    def __init__(self, url: str, client: redis.Redis | None = None):
        self.url = url
        self._client = client or redis.Redis.from_url(url, decode_responses=True)

    def get(self, key: str) -> str | None:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._client.set(key, value, ex=ttl_seconds)

    def exists(self, key: str) -> bool:
        return bool(self._client.exists(key))

    def ping(self) -> bool:
        return bool(self._client.ping())

    def close(self) -> None:
        self._client.close()


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None


class MemoryStore:
    def __init__(self, clock=time.time):
        self._entries: dict[str, _Entry] = {}
        self._clock = clock
        # Handlers run on a threadpool
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            self._cleanup_expired()
            entry = self._entries.get(key)
        return entry.value if entry else None

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=expires_at)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._entries.clear()

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [
            key for key, e in list(self._entries.items())
            if e.expires_at is not None and now >= e.expires_at
        ]
        for key in expired:
            del self._entries[key]


def build_store(backend: str, url: str | None = None) -> RedisStore | MemoryStore:
    """Create the store named by `backend` ("redis" or "memory")."""
    backend = backend.lower()
    if backend == "memory":
        logger.warning("Using in-process memory store; data is lost on restart.")
        return MemoryStore()
    if backend == "redis":
        if not url:
            raise ValueError("REDIS_URL is required for the redis store backend")
        return RedisStore(url)
    raise ValueError(f"Unknown store backend: {backend!r}")
