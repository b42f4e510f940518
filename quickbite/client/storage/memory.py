"""
In-Memory Client Storage

Used in development mode and in tests. Values are stored as JSON text so
the behaviour matches the Redis store (no shared mutable objects leak out).
"""

import json
import logging
from typing import Any, Optional

from quickbite.client.storage.base import BaseKeyValueStore

logger = logging.getLogger(__name__)


class MemoryStore(BaseKeyValueStore):
    """Dictionary-backed key-value store."""

    def __init__(self, name: str = "memory", initial: Optional[dict[str, Any]] = None):
        self.name = name
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get_json(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set_json(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)
        logger.debug(f"[{self.name}] set {key}")

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        logger.debug(f"[{self.name}] deleted {key}")

    def __contains__(self, key: str) -> bool:
        return key in self._data
