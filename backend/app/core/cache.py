"""
Key/value cache layer — backs the emergency-contact slot.

Provides:
    • MemoryKeyValueStore — process-local dict (default, tests)
    • RedisKeyValueStore  — async Redis client with namespaced keys and
                            millisecond TTLs
    • build_key_value_store — picks a backend from settings

Both backends store plain strings; callers own serialisation. Redis
errors are logged and reported as a miss / failed write rather than
raised, so a cache outage degrades to "no stored contact".

Usage:
    from backend.app.core.cache import build_key_value_store

    store = build_key_value_store()
    await store.set("Phone", '{"value": "+15551234567", "expiry": 0}', ttl_ms=1000)
    raw = await store.get("Phone")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from backend.app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal async string store used by the contact store."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_ms: Optional[int] = None) -> bool: ...

    async def delete(self, *keys: str) -> bool: ...

    async def close(self) -> None: ...


class MemoryKeyValueStore:
    """In-process store. Expiry is left to the caller's embedded stamps."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str, ttl_ms: Optional[int] = None) -> bool:
        self._data[key] = value
        return True

    async def delete(self, *keys: str) -> bool:
        for key in keys:
            self._data.pop(key, None)
        return True

    async def close(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class RedisKeyValueStore:
    """
    Redis-backed store.

    Keys are namespaced as ``{prefix}:{key}``. The client is created lazily
    on first use unless one is injected.
    """

    backend_name = "redis"

    def __init__(
        self,
        url: str,
        *,
        prefix: str = "contact",
        client: Any = None,
    ) -> None:
        self.url = url
        self.prefix = prefix
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    async def _get_redis(self):
        """Get or create async Redis client."""
        if self._client is None:
            try:
                import redis.asyncio as aioredis
                self._client = aioredis.from_url(
                    self.url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                logger.info("Redis connected: %s", self.url.split("@")[-1])
            except Exception as e:
                logger.warning("Redis unavailable: %s — contact cache disabled", e)
                return None
        return self._client

    async def get(self, key: str) -> Optional[str]:
        client = await self._get_redis()
        if not client:
            return None
        try:
            return await client.get(self._key(key))
        except Exception as e:
            logger.warning("Cache GET error for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_ms: Optional[int] = None) -> bool:
        client = await self._get_redis()
        if not client:
            return False
        try:
            if ttl_ms is not None and ttl_ms > 0:
                await client.set(self._key(key), value, px=ttl_ms)
            else:
                await client.set(self._key(key), value)
            return True
        except Exception as e:
            logger.warning("Cache SET error for %s: %s", key, e)
            return False

    async def delete(self, *keys: str) -> bool:
        if not keys:
            return True
        client = await self._get_redis()
        if not client:
            return False
        try:
            await client.delete(*(self._key(k) for k in keys))
            return True
        except Exception as e:
            logger.warning("Cache DELETE error for %s: %s", keys, e)
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")


def build_key_value_store(config: Optional[Settings] = None) -> KeyValueStore:
    """Create the configured key/value backend."""
    config = config or default_settings
    backend = config.CONTACT_STORE_BACKEND.lower()
    if backend == "redis":
        return RedisKeyValueStore(config.REDIS_URL, prefix=config.CONTACT_KEY_PREFIX)
    if backend != "memory":
        logger.warning("Unknown CONTACT_STORE_BACKEND %r — using memory", backend)
    return MemoryKeyValueStore()
