"""Shared fixtures: point the app at a throwaway SQLite database."""
from __future__ import annotations

import asyncio
import os
import tempfile

# Set env vars BEFORE any quickbite imports
_DB_DIR = tempfile.mkdtemp(prefix="quickbite-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'orders.db')}"
os.environ["ENV_MODE"] = "development"
os.environ["VERIFY_ORDER_TOTALS"] = "false"

import pytest

from quickbite.core.config import get_settings

get_settings.cache_clear()

from quickbite.client.checkout import CartItem, CheckoutDraft
from quickbite.database import async_session_maker, drop_db, init_db
from quickbite.models import Order, User


async def _create_user(name: str, email: str, token: str) -> User:
    async with async_session_maker() as session:
        user = User(name=name, email=email, api_token=token)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def _count_orders(client_key: str | None = None) -> int:
    from sqlalchemy import func, select

    async with async_session_maker() as session:
        query = select(func.count(Order.id))
        if client_key is not None:
            query = query.where(Order.client_key == client_key)
        return (await session.execute(query)).scalar() or 0


# ---------- Fixtures ----------

@pytest.fixture()
def count_orders():
    """Count stored orders, optionally for one clientKey."""
    def _count(client_key: str | None = None) -> int:
        return asyncio.run(_count_orders(client_key))
    return _count


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    asyncio.run(init_db())
    yield
    asyncio.run(drop_db())


@pytest.fixture()
def user() -> User:
    return asyncio.run(_create_user("Asha Rao", "asha@example.com", "token-asha"))


@pytest.fixture()
def other_user() -> User:
    return asyncio.run(_create_user("Vikram Shah", "vikram@example.com", "token-vikram"))


@pytest.fixture()
def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {user.api_token}"}


@pytest.fixture()
def client():
    """FastAPI TestClient (sync). Lifespan is not run; the schema comes from ``database``."""
    from fastapi.testclient import TestClient
    from quickbite.main import app
    return TestClient(app)


@pytest.fixture()
def order_payload() -> dict:
    """Two pizzas at 200: subtotal 400 + GST 20 + delivery 40."""
    return {
        "items": [{"name": "Pizza", "price": 200, "quantity": 2}],
        "total": 460.0,
        "clientKey": "ck-7f1c2b0e",
        "meta": {"paymentMethod": "COD", "address": "12 MG Road", "notes": ""},
    }


@pytest.fixture()
def pizza_draft() -> CheckoutDraft:
    return CheckoutDraft(
        cart=[CartItem(name="Pizza", price=200, qty=2)],
        method="COD",
        address="12 MG Road",
    )
