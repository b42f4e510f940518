"""Concurrent duplicate submissions against the order store."""
from __future__ import annotations

import asyncio

import httpx

from quickbite.main import app


async def _submit_concurrently(payload: dict, token: str, copies: int) -> list[httpx.Response]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        headers = {"Authorization": f"Bearer {token}", "Idempotency-Key": payload["clientKey"]}
        return await asyncio.gather(
            *(http.post("/api/orders", json=payload, headers=headers) for _ in range(copies))
        )


def test_concurrent_same_key_resolves_to_one_order(user, order_payload, count_orders):
    responses = asyncio.run(_submit_concurrently(order_payload, user.api_token, copies=2))

    assert all(r.status_code in (200, 201) for r in responses)
    assert sorted(r.status_code for r in responses) == [200, 201]
    assert len({r.json()["id"] for r in responses}) == 1
    assert count_orders(order_payload["clientKey"]) == 1


def test_many_concurrent_duplicates_all_see_the_same_order(user, order_payload, count_orders):
    responses = asyncio.run(_submit_concurrently(order_payload, user.api_token, copies=6))

    assert [r.status_code for r in responses].count(201) == 1
    assert len({r.json()["id"] for r in responses}) == 1
    assert count_orders() == 1
