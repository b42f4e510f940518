"""Tests for client storage."""
from __future__ import annotations

import asyncio

from quickbite.client.storage import (
    CHECKOUT_DRAFT_KEY,
    MemoryStore,
    RedisStore,
    get_local_store,
    get_session_store,
    reset_stores,
)


def test_memory_store_returns_copies():
    async def scenario():
        store = MemoryStore()
        draft = {"cart": [{"name": "Pizza", "price": 200, "qty": 2}]}
        await store.set_json(CHECKOUT_DRAFT_KEY, draft)
        draft["cart"].clear()
        loaded = await store.get_json(CHECKOUT_DRAFT_KEY)
        await store.delete(CHECKOUT_DRAFT_KEY)
        await store.delete(CHECKOUT_DRAFT_KEY)
        return loaded, await store.get_json(CHECKOUT_DRAFT_KEY)

    loaded, after_delete = asyncio.run(scenario())
    assert loaded == {"cart": [{"name": "Pizza", "price": 200, "qty": 2}]}
    assert after_delete is None


def test_development_mode_uses_separate_memory_stores():
    reset_stores()
    session_store, local_store = get_session_store(), get_local_store()
    assert session_store.provider_name == "memory"
    assert local_store.provider_name == "memory"
    assert session_store is not local_store
    assert get_session_store() is session_store
    reset_stores()


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisStore."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, key):
        self.data.pop(key, None)


def test_redis_store_namespaces_keys_and_applies_ttl():
    redis_client = FakeRedis()
    store = RedisStore(redis_client, namespace="session", ttl_seconds=1800)

    async def scenario():
        await store.set_json(CHECKOUT_DRAFT_KEY, {"method": "COD"})
        return await store.get_json(CHECKOUT_DRAFT_KEY)

    assert asyncio.run(scenario()) == {"method": "COD"}
    assert "quickbite:session:checkout_draft" in redis_client.data
    assert redis_client.expiry["quickbite:session:checkout_draft"] == 1800


def test_redis_store_ignores_unreadable_values():
    redis_client = FakeRedis()
    redis_client.data["quickbite:local:cart"] = "{not json"
    store = RedisStore(redis_client, namespace="local")
    assert asyncio.run(store.get_json("cart")) is None
