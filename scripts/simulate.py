"""
Order Simulation Script

Exercises the idempotent order endpoint against a running server.
Run from project root: python scripts/simulate.py --token <API token> [mode]

Modes:
    duplicates  Fire the same clientKey many times at once; expect one order
    burst       Fire many distinct orders at once
    checkout    Run the countdown controller end to end with a short countdown
"""

import argparse
import asyncio
import os
import random
import sys
import time
import uuid
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quickbite.client import (
    CartItem,
    CheckoutController,
    CheckoutDraft,
    OrderApiError,
    OrdersApiClient,
    load_order_history,
)
from quickbite.client.storage import AUTH_TOKEN_KEY, MemoryStore

# Configuration
API_BASE_URL = "http://localhost:8001"

MENU_ITEMS = [
    {"name": "Margherita Pizza", "price": 200.0},
    {"name": "Paneer Tikka", "price": 180.0},
    {"name": "Masala Dosa", "price": 90.0},
    {"name": "Veg Biryani", "price": 160.0},
    {"name": "Gulab Jamun", "price": 60.0},
    {"name": "Cold Coffee", "price": 80.0},
]
ADDRESSES = ["12 MG Road", "44 Brigade Road", "7 Park Street", "19 Linking Road"]


def generate_random_draft() -> CheckoutDraft:
    """Generate a random, complete checkout draft."""
    cart = [
        CartItem(name=item["name"], price=item["price"], qty=random.randint(1, 3))
        for item in random.sample(MENU_ITEMS, random.randint(1, 3))
    ]
    return CheckoutDraft(
        cart=cart,
        method=random.choice(["COD", "UPI"]),
        address=random.choice(ADDRESSES),
        notes=random.choice(["", "Extra napkins", "Ring doorbell"]),
    )


async def send_order(
    api: OrdersApiClient,
    payload: dict[str, Any],
    client_key: str,
    order_num: int,
) -> dict[str, Any]:
    start_time = time.time()
    try:
        order = await api.place_order(payload, client_key)
        return {
            "order_num": order_num,
            "success": True,
            "order_id": order.get("id"),
            "time": round(time.time() - start_time, 3),
        }
    except OrderApiError as e:
        return {
            "order_num": order_num,
            "success": False,
            "error": f"{e.status_code} {e.message}"[:100],
            "time": round(time.time() - start_time, 3),
        }


def print_report(results: list[dict[str, Any]], elapsed: float) -> None:
    successes = [r for r in results if r["success"]]
    order_ids = {r["order_id"] for r in successes}
    print("=" * 60)
    print(f"📊 Requests: {len(results)}  ✅ {len(successes)}  ❌ {len(results) - len(successes)}")
    print(f"🆔 Distinct order ids: {sorted(order_ids)}")
    print(f"⏱️  Elapsed: {elapsed:.2f}s")
    for failure in (r for r in results if not r["success"]):
        print(f"   #{failure['order_num']}: {failure['error']}")
    print("=" * 60)


async def run_duplicates(api: OrdersApiClient, count: int) -> None:
    """Same clientKey, same payload, all at once."""
    payload = generate_random_draft().to_order_payload()
    client_key = str(uuid.uuid4())
    print(f"🔁 Sending {count} concurrent requests with clientKey {client_key}")

    start = time.time()
    results = await asyncio.gather(
        *(send_order(api, payload, client_key, n) for n in range(1, count + 1))
    )
    print_report(list(results), time.time() - start)


async def run_burst(api: OrdersApiClient, count: int) -> None:
    """Distinct orders, all at once."""
    print(f"💥 Sending {count} distinct concurrent orders")
    start = time.time()
    results = await asyncio.gather(
        *(
            send_order(api, generate_random_draft().to_order_payload(), str(uuid.uuid4()), n)
            for n in range(1, count + 1)
        )
    )
    print_report(list(results), time.time() - start)


async def run_checkout(api: OrdersApiClient, token: str, duration: int, tick: float) -> None:
    """Drive the countdown controller against the live API."""
    session_store = MemoryStore(name="session")
    local_store = MemoryStore(name="local", initial={AUTH_TOKEN_KEY: token})
    draft = generate_random_draft()
    totals = draft.totals()
    print(f"🛒 {[(i.name, i.qty) for i in draft.cart]} → total ₹{totals.total:.2f}")

    controller = CheckoutController(
        api,
        session_store,
        local_store,
        duration=duration,
        tick_interval=tick,
        on_tick=lambda remaining: print(f"⏳ {remaining}", end="\r"),
        on_halfway=lambda remaining: print(f"\n⚠️ Halfway done! ({remaining} left)"),
        on_error=lambda message: print(f"\n❌ {message}"),
    )
    async with controller:
        await controller.begin(draft)
        outcome = await controller.wait()

    if outcome and outcome.placed:
        print(f"\n✅ Order #{outcome.order['id']} placed with clientKey {outcome.client_key}")

    history = await load_order_history(api, local_store)
    print(f"📦 You have {len(history)} order(s); newest is #{history[0]['id'] if history else '-'}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="QuickBite order simulation")
    parser.add_argument("mode", choices=["duplicates", "burst", "checkout"], nargs="?", default="duplicates")
    parser.add_argument("--token", required=True, help="API token from scripts/create_user.py")
    parser.add_argument("--url", default=API_BASE_URL)
    parser.add_argument("--count", type=int, default=20)
    parser.add_argument("--duration", type=int, default=10, help="Countdown ticks (checkout mode)")
    parser.add_argument("--tick", type=float, default=0.2, help="Seconds per tick (checkout mode)")
    args = parser.parse_args()

    async with httpx.AsyncClient(base_url=args.url, timeout=30.0) as http_client:
        api = OrdersApiClient(args.url, token=args.token, http_client=http_client)
        if args.mode == "duplicates":
            await run_duplicates(api, args.count)
        elif args.mode == "burst":
            await run_burst(api, args.count)
        else:
            await run_checkout(api, args.token, args.duration, args.tick)


if __name__ == "__main__":
    asyncio.run(main())
