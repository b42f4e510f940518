"""
Redis Client Storage

Keys are namespaced (``quickbite:<namespace>:<key>``) so a session store and
a local store can share one Redis database. Session-scoped stores pass a TTL
so an abandoned checkout draft expires on its own.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

from quickbite.client.storage.base import BaseKeyValueStore

logger = logging.getLogger(__name__)


class RedisStore(BaseKeyValueStore):
    """Redis-backed key-value store."""

    def __init__(
        self,
        client: aioredis.Redis,
        namespace: str,
        ttl_seconds: Optional[int] = None,
    ):
        self.client = client
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, namespace: str, ttl_seconds: Optional[int] = None) -> "RedisStore":
        return cls(
            aioredis.from_url(url, decode_responses=True, socket_timeout=2),
            namespace=namespace,
            ttl_seconds=ttl_seconds,
        )

    @property
    def provider_name(self) -> str:
        return "redis"

    def _key(self, key: str) -> str:
        return f"quickbite:{self.namespace}:{key}"

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable value at {self._key(key)}")
            return None

    async def set_json(self, key: str, value: Any) -> None:
        await self.client.set(self._key(key), json.dumps(value), ex=self.ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.client.delete(self._key(key))

    async def close(self) -> None:
        await self.client.aclose()
