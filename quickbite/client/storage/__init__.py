"""
Client Storage Factory

Provides the two stores the checkout client needs. The backend is chosen
from ENV_MODE, so the rest of the client stays agnostic about it.

Usage:
    from quickbite.client.storage import get_session_store, get_local_store

    session_store = get_session_store()
    local_store = get_local_store()

Environment Switching:
    - ENV_MODE=development → MemoryStore (process memory)
    - ENV_MODE=staging / production → RedisStore
"""

import logging
from functools import lru_cache

from quickbite.core.config import get_settings
from quickbite.client.storage.base import (
    BaseKeyValueStore,
    CHECKOUT_DRAFT_KEY,
    AUTH_TOKEN_KEY,
    CART_KEY,
)
from quickbite.client.storage.memory import MemoryStore
from quickbite.client.storage.redis_store import RedisStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_session_store() -> BaseKeyValueStore:
    """
    Store scoped to one checkout attempt (the checkout draft lives here).

    Redis entries expire after ``session_ttl_seconds``.
    """
    settings = get_settings()
    if settings.is_development:
        logger.info("Session Store: Using MemoryStore (development mode)")
        return MemoryStore(name="session")

    logger.info(f"Session Store: Using RedisStore ({settings.env_mode.value} mode)")
    return RedisStore.from_url(
        settings.redis_url, namespace="session", ttl_seconds=settings.session_ttl_seconds
    )


@lru_cache()
def get_local_store() -> BaseKeyValueStore:
    """Long-lived store holding the auth token and the pending cart."""
    settings = get_settings()
    if settings.is_development:
        logger.info("Local Store: Using MemoryStore (development mode)")
        return MemoryStore(name="local")

    logger.info(f"Local Store: Using RedisStore ({settings.env_mode.value} mode)")
    return RedisStore.from_url(settings.redis_url, namespace="local")


def reset_stores() -> None:
    """
    Clear the cached store instances.

    The next call to a getter builds a fresh store from current settings.
    """
    get_session_store.cache_clear()
    get_local_store.cache_clear()
    logger.debug("Client store cache cleared")


__all__ = [
    "get_session_store",
    "get_local_store",
    "reset_stores",
    "BaseKeyValueStore",
    "MemoryStore",
    "RedisStore",
    "CHECKOUT_DRAFT_KEY",
    "AUTH_TOKEN_KEY",
    "CART_KEY",
]
