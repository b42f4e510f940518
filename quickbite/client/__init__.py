"""
Checkout client.

    - api: httpx client for the order endpoints
    - checkout: checkout draft and countdown controller
    - history: order history retrieval
    - storage: session/local key-value stores
"""

from quickbite.client.api import OrdersApiClient
from quickbite.client.checkout import (
    CartItem,
    CheckoutController,
    CheckoutDraft,
    CheckoutOutcome,
    CheckoutState,
    new_client_key,
)
from quickbite.client.exceptions import (
    CheckoutRedirect,
    CheckoutStateError,
    LoginRequired,
    OrderApiError,
)
from quickbite.client.history import load_order_history, prepare_order_history

__all__ = [
    "OrdersApiClient",
    "CartItem",
    "CheckoutController",
    "CheckoutDraft",
    "CheckoutOutcome",
    "CheckoutState",
    "new_client_key",
    "CheckoutRedirect",
    "CheckoutStateError",
    "LoginRequired",
    "OrderApiError",
    "load_order_history",
    "prepare_order_history",
]
