"""
Order API Client

Async HTTP client for the order endpoints, built on httpx.

Usage:
    async with OrdersApiClient("http://localhost:8001") as api:
        order = await api.place_order(payload, client_key, token=token)
        orders = await api.list_orders(token=token)
"""

import logging
from typing import Any, Optional

import httpx

from quickbite.client.exceptions import OrderApiError
from quickbite.core.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class OrdersApiClient:
    """Thin wrapper around ``/api/orders``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = (base_url or get_settings().api_base_url).rstrip("/")
        self.token = token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "OrdersApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self, token: Optional[str]) -> dict[str, str]:
        token = token or self.token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str],
        failure_message: str,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        all_headers = self._headers(token)
        all_headers.update(headers or {})
        try:
            response = await self._client.request(method, path, headers=all_headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise OrderApiError(failure_message, code="NETWORK_ERROR") from e

        if response.status_code >= 400:
            message, code = failure_message, None
            try:
                body = response.json()
                message = body.get("message") or message
                code = body.get("code")
            except ValueError:
                pass
            raise OrderApiError(message, status_code=response.status_code, code=code)

        return response

    async def place_order(
        self,
        payload: dict[str, Any],
        client_key: str,
        token: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Submit an order. The idempotency key travels in the body and in the
        ``Idempotency-Key`` header, so resubmitting is always safe.
        """
        response = await self._request(
            "POST",
            "/api/orders",
            token=token,
            failure_message="Failed to place order.",
            headers={"Idempotency-Key": client_key},
            json={**payload, "clientKey": client_key},
        )
        order = response.json()
        if response.headers.get("Idempotent-Replayed") == "true":
            logger.info(f"Order #{order.get('id')} was already placed for {client_key}")
        return order

    async def list_orders(self, token: Optional[str] = None, **params: Any) -> list[dict[str, Any]]:
        response = await self._request(
            "GET",
            "/api/orders",
            token=token,
            failure_message="Failed to load orders.",
            params=params or None,
        )
        data = response.json()
        return data if isinstance(data, list) else []

    async def get_order(self, order_id: int, token: Optional[str] = None) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"/api/orders/{order_id}",
            token=token,
            failure_message="Failed to load order.",
        )
        return response.json()
