"""
                        Services Module

Business logic behind the HTTP routes.

Services:
    - orders: idempotent order placement and order history queries
    - contact: contact form persistence
"""

from quickbite.services.orders import (
    place_order,
    list_orders_for_owner,
    get_order_for_owner,
    get_order_by_client_key,
)
from quickbite.services.contact import save_contact_message

__all__ = [
    "place_order",
    "list_orders_for_owner",
    "get_order_for_owner",
    "get_order_by_client_key",
    "save_contact_message",
]
