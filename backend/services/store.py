import asyncio
import json
from typing import Any, Dict, Optional
import redis.asyncio as redis
from config import logger

class KeyValueStore:
    """Async get/put interface for externally persisted state."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def put(self, key: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None

class InMemoryStore(KeyValueStore):
    """Process-local store; last writer wins per key."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, value: Dict[str, Any]) -> None:
        raw = json.dumps(value)
        async with self._lock:
            self._data[key] = raw

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

class RedisStore(KeyValueStore):
    """Redis-backed store for cache entries and quota state shared across processes."""

    def __init__(self, redis_url: str, namespace: str = "legis:"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.redis = redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.get(self._key(key))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable value for key %s", key)
            return None

    async def put(self, key: str, value: Dict[str, Any]) -> None:
        await self.redis.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def close(self) -> None:
        await self.redis.aclose()
