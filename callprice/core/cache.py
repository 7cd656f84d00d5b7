from __future__ import annotations

import logging
from typing import Any

import orjson
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisCache:
    """JSON documents in Redis, every key prefixed with ``namespace:``.

    The cache only ever speeds things up: an unreachable Redis reads as a miss
    and a failed write is logged, so callers never see its errors. An entry
    that no longer decodes is evicted on read.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        namespace: str = "callprice",
        client: Redis | None = None,
    ) -> None:
        self.client = client if client is not None else Redis.from_url(redis_url, decode_responses=False)
        self.namespace = namespace.strip(":")

    def key(self, name: str) -> str:
        return f"{self.namespace}:{name}" if self.namespace else name

    async def close(self) -> None:
        closer = getattr(self.client, "aclose", None) or self.client.close
        await closer()

    async def get_json(self, name: str) -> Any | None:
        key = self.key(name)
        try:
            raw = await self.client.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache_read_failed", extra={"event": "cache_read_failed", "key": key, "outcome": "miss", "error": str(exc)})
            return None
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("cache_entry_corrupt", extra={"event": "cache_entry_corrupt", "key": key, "outcome": "evicted"})
            await self.delete(name)
            return None

    async def set_json(self, name: str, value: Any, ttl: int) -> bool:
        """Store ``value`` for ``ttl`` seconds (no expiry when ``ttl`` is not positive)."""
        key = self.key(name)
        try:
            payload = orjson.dumps(value)
        except orjson.JSONEncodeError as exc:
            logger.warning("cache_entry_unserializable", extra={"event": "cache_entry_unserializable", "key": key, "error": str(exc)})
            return False
        try:
            await self.client.set(key, payload, ex=ttl if ttl > 0 else None)
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache_write_failed", extra={"event": "cache_write_failed", "key": key, "outcome": "skipped", "error": str(exc)})
            return False
        return True

    async def delete(self, name: str) -> bool:
        key = self.key(name)
        try:
            return bool(await self.client.delete(key))
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache_delete_failed", extra={"event": "cache_delete_failed", "key": key, "error": str(exc)})
            return False
