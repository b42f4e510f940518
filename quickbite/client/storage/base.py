"""
Client Storage Abstract Base Class

The checkout client never keeps its state in globals. It is handed two
key-value stores with different lifetimes:

    - session store: survives a reload during one checkout attempt
      (holds the checkout draft)
    - local store: long-lived (holds the auth token and the pending cart)

Both implementations (in-memory and Redis) honour this interface, so the
controller works the same against either.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


# Well-known keys
CHECKOUT_DRAFT_KEY = "checkout_draft"
AUTH_TOKEN_KEY = "auth_token"
CART_KEY = "cart"


class BaseKeyValueStore(ABC):
    """
    Abstract base class for client key-value storage.

    Values are JSON-serializable objects.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the storage backend (e.g. "memory", "redis")."""
        pass

    @abstractmethod
    async def get_json(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The stored value, or None if the key is absent or unreadable
        """
        pass

    @abstractmethod
    async def set_json(self, key: str, value: Any) -> None:
        """Write a value, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
