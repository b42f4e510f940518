"""Tests for the checkout countdown controller."""
from __future__ import annotations

import asyncio

import pytest

from quickbite.client import checkout as checkout_module
from quickbite.client.checkout import (
    CheckoutController,
    CheckoutDraft,
    CheckoutState,
    new_client_key,
)
from quickbite.client.exceptions import (
    CheckoutRedirect,
    CheckoutStateError,
    LoginRequired,
    OrderApiError,
)
from quickbite.client.storage import AUTH_TOKEN_KEY, CART_KEY, CHECKOUT_DRAFT_KEY, MemoryStore
from quickbite.core.config import FailurePolicy


class FakeOrdersApi:
    """Records submissions; optionally slow or failing."""

    def __init__(self, delay: float = 0.0, fail_with: str | None = None):
        self.delay = delay
        self.fail_with = fail_with
        self.calls = []

    async def place_order(self, payload, client_key, token=None):
        self.calls.append({"payload": payload, "client_key": client_key, "token": token})
        await asyncio.sleep(self.delay)
        if self.fail_with:
            raise OrderApiError(self.fail_with, status_code=503)
        return {
            "id": 101,
            "clientKey": client_key,
            "total": payload["total"],
            "status": "Pending",
        }


def make_controller(api=None, session_store=None, local_store=None, **kwargs):
    api = api or FakeOrdersApi()
    session_store = session_store or MemoryStore(name="session")
    if local_store is None:
        local_store = MemoryStore(
            name="local",
            initial={AUTH_TOKEN_KEY: "token-asha", CART_KEY: [{"name": "Pizza", "price": 200, "qty": 2}]},
        )
    kwargs.setdefault("duration", 60)
    kwargs.setdefault("tick_interval", 0.001)
    return CheckoutController(api, session_store, local_store, **kwargs), api, session_store, local_store


async def tick_times(controller, times):
    for _ in range(times):
        await controller.tick()


# ---------- Preconditions ----------

def test_begin_without_login_redirects_to_login(pizza_draft):
    controller, api, _, _ = make_controller(local_store=MemoryStore())

    with pytest.raises(LoginRequired) as exc_info:
        asyncio.run(controller.begin(pizza_draft, autostart=False))

    assert exc_info.value.target == "login"
    assert controller.state is CheckoutState.IDLE
    assert controller.client_key is None


@pytest.mark.parametrize(
    "draft",
    [
        None,
        CheckoutDraft(cart=[], method="COD", address="12 MG Road"),
        CheckoutDraft(cart=[checkout_module.CartItem("Pizza", 200, 2)], method="", address="12 MG Road"),
        CheckoutDraft(cart=[checkout_module.CartItem("Pizza", 200, 2)], method="COD", address="   "),
        CheckoutDraft(cart=[checkout_module.CartItem("Pizza", 200, 0)], method="COD", address="12 MG Road"),
    ],
)
def test_incomplete_draft_redirects_to_cart(draft):
    controller, api, session_store, _ = make_controller()

    with pytest.raises(CheckoutRedirect) as exc_info:
        asyncio.run(controller.begin(draft, autostart=False))

    assert exc_info.value.target == "cart"
    assert controller.state is CheckoutState.IDLE
    assert CHECKOUT_DRAFT_KEY not in session_store


def test_malformed_stored_draft_redirects_to_cart():
    session_store = MemoryStore(initial={CHECKOUT_DRAFT_KEY: {"cart": [{"name": "Pizza"}]}})
    controller, _, _, _ = make_controller(session_store=session_store)

    with pytest.raises(CheckoutRedirect):
        asyncio.run(controller.begin(autostart=False))


def test_begin_resumes_draft_from_session_store(pizza_draft):
    session_store = MemoryStore(initial={CHECKOUT_DRAFT_KEY: pizza_draft.to_dict()})
    controller, _, _, _ = make_controller(session_store=session_store)

    asyncio.run(controller.begin(autostart=False))

    assert controller.state is CheckoutState.COUNTING
    assert controller.draft == pizza_draft


def test_begin_arms_with_fresh_key_and_saves_draft(pizza_draft):
    controller, _, session_store, _ = make_controller()
    other, _, _, _ = make_controller()

    asyncio.run(controller.begin(pizza_draft, autostart=False))
    asyncio.run(other.begin(pizza_draft, autostart=False))

    assert controller.state is CheckoutState.COUNTING
    assert controller.remaining == 60
    assert controller.client_key and controller.client_key != other.client_key
    assert asyncio.run(session_store.get_json(CHECKOUT_DRAFT_KEY)) == pizza_draft.to_dict()


def test_controller_is_single_use(pizza_draft):
    controller, _, _, _ = make_controller()
    asyncio.run(controller.begin(pizza_draft, autostart=False))

    with pytest.raises(CheckoutStateError):
        asyncio.run(controller.begin(pizza_draft, autostart=False))


def test_client_key_falls_back_without_os_randomness(monkeypatch):
    def no_urandom():
        raise NotImplementedError

    monkeypatch.setattr(checkout_module.uuid, "uuid4", no_urandom)
    key = new_client_key()
    assert key.startswith("key_")
    assert key != new_client_key()


# ---------- Countdown ----------

def test_halfway_fires_once_at_thirty(pizza_draft):
    halfway_events = []
    ticks = []
    controller, api, _, _ = make_controller(on_halfway=halfway_events.append, on_tick=ticks.append)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await tick_times(controller, 59)

    asyncio.run(scenario())

    assert halfway_events == [30]
    assert controller.halfway_reached
    assert ticks[0] == 59 and ticks[-1] == 1
    assert controller.state is CheckoutState.COUNTING
    assert api.calls == []


def test_expiry_places_exactly_one_order(pizza_draft):
    placed = []
    controller, api, session_store, local_store = make_controller(on_placed=placed.append)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await tick_times(controller, 60)
        # Ticks after the end are ignored
        await tick_times(controller, 5)

    asyncio.run(scenario())

    assert controller.state is CheckoutState.PLACED
    assert len(api.calls) == 1
    call = api.calls[0]
    assert call["client_key"] == controller.client_key
    assert call["token"] == "token-asha"
    assert call["payload"]["total"] == 460.00
    assert placed == [{"id": 101, "clientKey": controller.client_key, "total": 460.0, "status": "Pending"}]
    assert controller.outcome.placed
    assert CHECKOUT_DRAFT_KEY not in session_store
    assert CART_KEY not in local_store


def test_timer_drives_countdown_to_completion(pizza_draft):
    controller, api, _, _ = make_controller(duration=4)

    async def scenario():
        await controller.begin(pizza_draft)
        return await controller.wait()

    outcome = asyncio.run(scenario())

    assert outcome.placed
    assert outcome.order["id"] == 101
    assert controller.remaining == 0
    assert len(api.calls) == 1


def test_concurrent_complete_submits_once(pizza_draft):
    controller, api, _, _ = make_controller(api=FakeOrdersApi(delay=0.02))

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        return await asyncio.gather(controller.complete(), controller.complete(), controller.complete())

    outcomes = asyncio.run(scenario())

    assert len(api.calls) == 1
    assert all(o is outcomes[0] for o in outcomes)
    assert controller.state is CheckoutState.PLACED


def test_complete_while_timer_expires_submits_once(pizza_draft):
    controller, api, _, _ = make_controller(api=FakeOrdersApi(delay=0.02), duration=2)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()
        return await asyncio.gather(controller.tick(), controller.complete())

    asyncio.run(scenario())

    assert len(api.calls) == 1
    assert controller.state is CheckoutState.PLACED


# ---------- Cancel & teardown ----------

def test_cancel_discards_draft_without_contacting_server(pizza_draft):
    cancelled = []
    controller, api, session_store, local_store = make_controller(
        on_cancelled=lambda: cancelled.append(True)
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await tick_times(controller, 10)
        result = await controller.cancel()
        await tick_times(controller, 60)
        return result, await controller.complete()

    result, late_outcome = asyncio.run(scenario())

    assert result is True
    assert cancelled == [True]
    assert controller.state is CheckoutState.CANCELLED
    assert controller.remaining == 50
    assert api.calls == []
    assert late_outcome.placed is False
    assert CHECKOUT_DRAFT_KEY not in session_store
    assert CART_KEY not in local_store


def test_cancel_after_placement_is_refused(pizza_draft):
    controller, _, _, _ = make_controller(duration=1)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()
        return await controller.cancel()

    assert asyncio.run(scenario()) is False
    assert controller.state is CheckoutState.PLACED


def test_close_releases_timer_and_keeps_draft(pizza_draft):
    controller, api, session_store, _ = make_controller(tick_interval=0.01)

    async def scenario():
        await controller.begin(pizza_draft)
        await asyncio.sleep(0.035)
        await controller.close()
        remaining = controller.remaining
        await asyncio.sleep(0.05)
        return remaining

    remaining_at_close = asyncio.run(scenario())

    assert controller.state is CheckoutState.CLOSED
    assert controller.remaining == remaining_at_close
    assert api.calls == []
    assert CHECKOUT_DRAFT_KEY in session_store


def test_close_waits_for_submission_in_flight(pizza_draft):
    controller, api, _, _ = make_controller(api=FakeOrdersApi(delay=0.02), duration=1)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        completion = asyncio.ensure_future(controller.tick())
        await asyncio.sleep(0)
        await controller.close()
        await completion

    asyncio.run(scenario())

    assert controller.state is CheckoutState.PLACED
    assert len(api.calls) == 1


# ---------- Failures ----------

def test_failure_discards_draft_by_default(pizza_draft):
    errors = []
    controller, api, session_store, local_store = make_controller(
        api=FakeOrdersApi(fail_with="Service unavailable"), duration=1, on_error=errors.append
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()

    asyncio.run(scenario())

    assert controller.state is CheckoutState.FAILED
    assert errors == ["Service unavailable"]
    assert controller.outcome.error == "Service unavailable"
    assert CHECKOUT_DRAFT_KEY not in session_store
    assert CART_KEY in local_store
    with pytest.raises(CheckoutStateError):
        asyncio.run(controller.retry())


def test_keep_draft_policy_allows_retry_with_same_key(pizza_draft):
    api = FakeOrdersApi(fail_with="Network error")
    controller, _, session_store, local_store = make_controller(
        api=api, duration=1, failure_policy=FailurePolicy.KEEP_DRAFT
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()
        assert controller.state is CheckoutState.FAILED
        assert CHECKOUT_DRAFT_KEY in session_store
        api.fail_with = None
        return await controller.retry()

    outcome = asyncio.run(scenario())

    assert outcome.placed
    assert len(api.calls) == 2
    assert api.calls[0]["client_key"] == api.calls[1]["client_key"] == controller.client_key
    assert CHECKOUT_DRAFT_KEY not in session_store
    assert CART_KEY not in local_store


def test_expired_login_at_submission_fails_with_login_redirect(pizza_draft):
    controller, api, _, local_store = make_controller(duration=1)

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await local_store.delete(AUTH_TOKEN_KEY)
        await controller.tick()

    asyncio.run(scenario())

    assert controller.state is CheckoutState.FAILED
    assert controller.outcome.redirect == "login"
    assert api.calls == []


class UnreachableStore(MemoryStore):
    """Reads work, deletes fail like a dropped Redis connection."""

    async def delete(self, key):
        raise ConnectionError("redis gone")


class CrashingOrdersApi(FakeOrdersApi):
    async def place_order(self, payload, client_key, token=None):
        self.calls.append({"payload": payload, "client_key": client_key, "token": token})
        raise RuntimeError("unexpected response shape")


def test_placed_order_survives_cleanup_failure(pizza_draft):
    placed, errors = [], []
    controller, api, session_store, local_store = make_controller(
        session_store=UnreachableStore(name="session"),
        duration=1,
        on_placed=placed.append,
        on_error=errors.append,
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()

    asyncio.run(scenario())

    assert len(api.calls) == 1
    assert controller.state is CheckoutState.PLACED
    assert controller.outcome.placed
    assert controller.outcome.order["id"] == 101
    assert len(placed) == 1
    assert errors == []
    assert CART_KEY not in local_store


def test_unexpected_submission_error_is_reported(pizza_draft):
    errors = []
    controller, api, session_store, local_store = make_controller(
        api=CrashingOrdersApi(), duration=1, on_error=errors.append
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()

    asyncio.run(scenario())

    assert controller.state is CheckoutState.FAILED
    assert controller.outcome.error == "Failed to place order."
    assert errors == ["Failed to place order."]
    assert CHECKOUT_DRAFT_KEY not in session_store
    assert CART_KEY in local_store


def test_timer_driven_submission_error_does_not_escape(pizza_draft):
    controller, api, _, _ = make_controller(api=CrashingOrdersApi(), duration=2)

    async def scenario():
        await controller.begin(pizza_draft)
        return await controller.wait()

    outcome = asyncio.run(scenario())

    assert outcome.placed is False
    assert controller.state is CheckoutState.FAILED
    assert len(api.calls) == 1


def test_concurrent_retries_share_one_submission(pizza_draft):
    api = FakeOrdersApi(fail_with="Network error")
    controller, _, _, _ = make_controller(
        api=api, duration=1, failure_policy=FailurePolicy.KEEP_DRAFT
    )

    async def scenario():
        await controller.begin(pizza_draft, autostart=False)
        await controller.tick()
        api.fail_with = None
        api.delay = 0.02
        return await asyncio.gather(controller.retry(), controller.retry())

    first, second = asyncio.run(scenario())

    assert len(api.calls) == 2
    assert first is second
    assert first.placed
    assert controller.state is CheckoutState.PLACED
