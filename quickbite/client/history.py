"""
Order History Retrieval

The server already returns orders newest first, but the client does not rely
on it: results are deduplicated by ``id`` and re-sorted by ``createdAt``
before they are shown.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from quickbite.client.api import OrdersApiClient
from quickbite.client.exceptions import LoginRequired
from quickbite.client.storage import AUTH_TOKEN_KEY, BaseKeyValueStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Read an ISO-8601 timestamp; naive values are taken as UTC.

    Missing or unreadable values sort last.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    else:
        return _EPOCH

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def dedupe_orders(orders: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop repeated ids; the first occurrence wins."""
    by_id: dict[Any, dict[str, Any]] = {}
    for order in orders:
        order_id = order.get("id")
        if order_id not in by_id:
            by_id[order_id] = order
    return list(by_id.values())


def sort_newest_first(orders: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(orders, key=lambda o: parse_timestamp(o.get("createdAt")), reverse=True)


def prepare_order_history(orders: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Deduplicate by id, then sort by createdAt descending."""
    orders = list(orders)
    unique = dedupe_orders(orders)
    if len(unique) != len(orders):
        logger.warning(f"Order history contained {len(orders) - len(unique)} duplicate(s)")
    return sort_newest_first(unique)


async def load_order_history(
    api: OrdersApiClient,
    local_store: BaseKeyValueStore,
    token: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Fetch the signed-in user's orders ready for display.

    Raises:
        LoginRequired: no auth token is stored
        OrderApiError: the API call failed
    """
    token = token or await local_store.get_json(AUTH_TOKEN_KEY)
    if not token:
        raise LoginRequired()

    orders = await api.list_orders(token=token)
    return prepare_order_history(orders)
