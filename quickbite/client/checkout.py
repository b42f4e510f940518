"""
Checkout Countdown Controller

Drives one checkout attempt on the client:

    IDLE ──begin()──▶ ARMED ──▶ COUNTING ──tick() × duration──▶ COMPLETING ──▶ PLACED
                                   │                                  └──────▶ FAILED
                                   └──cancel()──▶ CANCELLED
                                   └──close()───▶ CLOSED (draft kept for resume)

``begin()`` generates a fresh idempotency key, so every request this
controller sends for the attempt carries the same ``clientKey``. The order
is placed when the countdown reaches zero; cancelling is the only user exit.

The controller is single-use: build a new one for the next checkout.
"""

import asyncio
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from quickbite.client.api import OrdersApiClient
from quickbite.client.exceptions import (
    CheckoutRedirect,
    CheckoutStateError,
    LoginRequired,
    OrderApiError,
)
from quickbite.client.storage import (
    AUTH_TOKEN_KEY,
    CART_KEY,
    CHECKOUT_DRAFT_KEY,
    BaseKeyValueStore,
)
from quickbite.core.config import FailurePolicy, get_settings
from quickbite.pricing import OrderTotals, calculate_order_totals, cart_subtotal

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    COUNTING = "counting"
    COMPLETING = "completing"
    PLACED = "placed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


TERMINAL_STATES = frozenset(
    {CheckoutState.PLACED, CheckoutState.FAILED, CheckoutState.CANCELLED, CheckoutState.CLOSED}
)


def new_client_key() -> str:
    """Unguessable idempotency key; time+random when no OS randomness is available."""
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        suffix = "".join(random.choice("0123456789abcdefghijklmnopqrstuvwxyz") for _ in range(12))
        return f"key_{int(time.time() * 1000)}_{suffix}"


# =============================================================================
# CHECKOUT DRAFT
# =============================================================================

@dataclass
class CartItem:
    name: str
    price: float
    qty: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartItem":
        return cls(
            name=str(data["name"]),
            price=float(data["price"]),
            qty=int(data.get("qty", data.get("quantity"))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "price": self.price, "qty": self.qty}


@dataclass
class CheckoutDraft:
    """
    Snapshot of what the user is about to order.

    ``total`` is the cart subtotal carried over from the cart page; when it
    is absent the subtotal is summed from the items.
    """
    cart: list[CartItem]
    method: str
    address: str
    notes: str = ""
    total: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CheckoutDraft":
        """
        Raises:
            ValueError: the stored draft is malformed
        """
        try:
            total = data.get("total")
            return cls(
                cart=[CartItem.from_dict(item) for item in data.get("cart") or []],
                method=str(data.get("method") or ""),
                address=str(data.get("address") or ""),
                notes=str(data.get("notes") or ""),
                total=float(total) if total is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed checkout draft: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "cart": [item.to_dict() for item in self.cart],
            "method": self.method,
            "address": self.address,
            "notes": self.notes,
            "total": self.total,
        }

    def missing_details(self) -> list[str]:
        missing = []
        if not self.cart:
            missing.append("cart")
        elif any(item.qty < 1 or item.price < 0 for item in self.cart):
            missing.append("cart items")
        if not self.method.strip():
            missing.append("payment method")
        if not self.address.strip():
            missing.append("address")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_details()

    def totals(self) -> OrderTotals:
        if self.total is not None:
            subtotal = self.total
        else:
            subtotal = cart_subtotal((item.price, item.qty) for item in self.cart)
        return calculate_order_totals(subtotal)

    def to_order_payload(self) -> dict[str, Any]:
        """Request body for ``POST /api/orders`` without the clientKey."""
        return {
            "items": [
                {"name": item.name, "price": item.price, "quantity": item.qty}
                for item in self.cart
            ],
            "total": self.totals().total,
            "meta": {
                "paymentMethod": self.method,
                "address": self.address,
                "notes": self.notes,
            },
        }


@dataclass
class CheckoutOutcome:
    """Result of the submission at the end of the countdown."""
    placed: bool
    client_key: str
    order: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    redirect: Optional[str] = None


# =============================================================================
# CONTROLLER
# =============================================================================

class CheckoutController:
    """
    Countdown-driven checkout for a single attempt.

    Args:
        api: Order API client
        session_store: Store scoped to this checkout (holds the draft)
        local_store: Long-lived store (auth token, pending cart)
        duration: Countdown length in ticks
        tick_interval: Seconds per tick
        failure_policy: Draft handling after a failed submission
        on_tick / on_halfway / on_placed / on_error / on_cancelled: UI hooks
    """

    def __init__(
        self,
        api: OrdersApiClient,
        session_store: BaseKeyValueStore,
        local_store: BaseKeyValueStore,
        *,
        duration: Optional[int] = None,
        tick_interval: Optional[float] = None,
        failure_policy: Optional[FailurePolicy] = None,
        key_factory: Callable[[], str] = new_client_key,
        on_tick: Optional[Callable[[int], None]] = None,
        on_halfway: Optional[Callable[[int], None]] = None,
        on_placed: Optional[Callable[[dict], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_cancelled: Optional[Callable[[], None]] = None,
    ):
        settings = get_settings()
        self.api = api
        self.session_store = session_store
        self.local_store = local_store
        self.duration = duration if duration is not None else settings.checkout_countdown_seconds
        self.tick_interval = (
            tick_interval if tick_interval is not None else settings.checkout_tick_seconds
        )
        self.failure_policy = FailurePolicy(failure_policy or settings.checkout_failure_policy)
        self._key_factory = key_factory

        self.on_tick = on_tick
        self.on_halfway = on_halfway
        self.on_placed = on_placed
        self.on_error = on_error
        self.on_cancelled = on_cancelled

        self._state = CheckoutState.IDLE
        self._draft: Optional[CheckoutDraft] = None
        self._client_key: Optional[str] = None
        self._remaining = 0
        self._halfway_notified = False
        self._timer: Optional[asyncio.Task] = None
        self._completion: Optional[asyncio.Future] = None
        self._outcome: Optional[CheckoutOutcome] = None

    # -------------------------------------------------------------------------
    # Read-only view
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def halfway(self) -> int:
        return self.duration // 2

    @property
    def halfway_reached(self) -> bool:
        return self._halfway_notified

    @property
    def client_key(self) -> Optional[str]:
        return self._client_key

    @property
    def draft(self) -> Optional[CheckoutDraft]:
        return self._draft

    @property
    def outcome(self) -> Optional[CheckoutOutcome]:
        return self._outcome

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def begin(self, draft: Optional[CheckoutDraft] = None, autostart: bool = True) -> None:
        """
        Check preconditions, arm the controller and start counting.

        Without an explicit ``draft`` the one saved in the session store is
        resumed.

        Raises:
            LoginRequired: no auth token stored
            CheckoutRedirect: draft missing or incomplete (target "cart")
            CheckoutStateError: controller already used
        """
        if self._state is not CheckoutState.IDLE:
            raise CheckoutStateError(f"Checkout already {self._state.value}")

        token = await self.local_store.get_json(AUTH_TOKEN_KEY)
        if not token:
            raise LoginRequired("Please login to continue with payment.")

        if draft is None:
            stored = await self.session_store.get_json(CHECKOUT_DRAFT_KEY)
            if stored:
                try:
                    draft = CheckoutDraft.from_dict(stored)
                except ValueError as e:
                    logger.warning(str(e))
                    draft = None

        if draft is None or not draft.is_complete:
            missing = draft.missing_details() if draft else ["draft"]
            logger.info(f"Checkout not armed, missing: {', '.join(missing)}")
            raise CheckoutRedirect(
                CheckoutRedirect.CART, "Missing order details. Redirecting to your cart."
            )

        self._draft = draft
        await self.session_store.set_json(CHECKOUT_DRAFT_KEY, draft.to_dict())

        self._arm()
        if autostart:
            self.start_timer()

    def _arm(self) -> None:
        self._client_key = self._key_factory()
        self._remaining = self.duration
        self._halfway_notified = False
        self._state = CheckoutState.ARMED
        logger.info(f"Checkout armed with clientKey {self._client_key}")

        self._state = CheckoutState.COUNTING
        logger.info(f"Countdown started: {self.duration} ticks of {self.tick_interval}s")

    def start_timer(self) -> None:
        """Schedule the repeating tick on the running event loop."""
        if self._state is not CheckoutState.COUNTING:
            raise CheckoutStateError(f"Cannot start timer while {self._state.value}")
        if self._timer is None:
            self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    async def _run_timer(self) -> None:
        while self._state is CheckoutState.COUNTING:
            await asyncio.sleep(self.tick_interval)
            await self.tick()

    def _stop_timer(self) -> None:
        timer, self._timer = self._timer, None
        # The timer task may be the one completing the order; never cancel it from inside
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    async def tick(self) -> None:
        """Advance the countdown by one unit."""
        if self._state is not CheckoutState.COUNTING:
            return

        self._remaining -= 1
        if self.on_tick:
            self.on_tick(self._remaining)

        if self._remaining == self.halfway and self.halfway > 0 and not self._halfway_notified:
            self._halfway_notified = True
            logger.info("Halfway done! It'll be ready soon!")
            if self.on_halfway:
                self.on_halfway(self._remaining)

        if self._remaining <= 0:
            await self.complete()

    async def complete(self) -> Optional[CheckoutOutcome]:
        """
        Submit the order once.

        Every call, including concurrent ones, shares the single submission
        started by the first; calls after cancel or close return None.
        """
        if self._completion is not None:
            return await asyncio.shield(self._completion)

        if self._state is not CheckoutState.COUNTING:
            logger.debug(f"complete() ignored while {self._state.value}")
            return self._outcome

        # No await between the state check and this transition
        self._state = CheckoutState.COMPLETING
        self._stop_timer()
        self._completion = asyncio.ensure_future(self._submit())
        return await asyncio.shield(self._completion)

    async def retry(self) -> CheckoutOutcome:
        """
        Resubmit after a failure with the same clientKey.

        Only available with the ``keep_draft`` failure policy. A retry already
        in flight is shared, like ``complete()``.
        """
        if self._completion is not None:
            return await asyncio.shield(self._completion)

        if self._state is not CheckoutState.FAILED or self.failure_policy is not FailurePolicy.KEEP_DRAFT:
            raise CheckoutStateError("Nothing to retry")

        logger.info(f"Retrying order submission for clientKey {self._client_key}")
        self._state = CheckoutState.COMPLETING
        self._completion = asyncio.ensure_future(self._submit())
        return await asyncio.shield(self._completion)

    async def _submit(self) -> CheckoutOutcome:
        try:
            return await self._place()
        except Exception:
            logger.exception(f"Unexpected error while placing order {self._client_key}")
            if self._state is CheckoutState.PLACED:
                return self._outcome
            return await self._fail("Failed to place order.")

    async def _place(self) -> CheckoutOutcome:
        token = await self.local_store.get_json(AUTH_TOKEN_KEY)
        if not token:
            return await self._fail("Please login again.", redirect=CheckoutRedirect.LOGIN)

        payload = self._draft.to_order_payload()
        logger.info(f"Placing order {self._client_key} (total={payload['total']:.2f})")
        try:
            order = await self.api.place_order(payload, self._client_key, token=token)
        except OrderApiError as e:
            return await self._fail(e.message)

        # Placed on the server from here on
        self._state = CheckoutState.PLACED
        self._outcome = CheckoutOutcome(placed=True, client_key=self._client_key, order=order)
        logger.info(f"✅ Your order has been placed! (order #{order.get('id')})")

        await self._forget(self.session_store, CHECKOUT_DRAFT_KEY)
        await self._forget(self.local_store, CART_KEY)
        if self.on_placed:
            self.on_placed(order)
        return self._outcome

    async def _fail(self, message: str, redirect: Optional[str] = None) -> CheckoutOutcome:
        self._state = CheckoutState.FAILED
        self._completion = None
        self._outcome = CheckoutOutcome(
            placed=False, client_key=self._client_key, error=message, redirect=redirect
        )
        logger.warning(f"Order {self._client_key} failed: {message}")
        if self.failure_policy is FailurePolicy.DISCARD:
            await self._forget(self.session_store, CHECKOUT_DRAFT_KEY)
        if self.on_error:
            self.on_error(message)
        return self._outcome

    async def _forget(self, store: BaseKeyValueStore, key: str) -> None:
        try:
            await store.delete(key)
        except Exception:
            logger.exception(f"Could not clear {key} from {store.provider_name} store")

    async def cancel(self) -> bool:
        """
        Abandon the checkout without contacting the server.

        Returns:
            True if the checkout was cancelled, False if it was past counting
        """
        if self._state not in (CheckoutState.ARMED, CheckoutState.COUNTING):
            return False

        self._stop_timer()
        self._state = CheckoutState.CANCELLED
        await self._forget(self.session_store, CHECKOUT_DRAFT_KEY)
        await self._forget(self.local_store, CART_KEY)
        self._outcome = CheckoutOutcome(placed=False, client_key=self._client_key)
        logger.info("❌ Your order has been cancelled.")
        if self.on_cancelled:
            self.on_cancelled()
        return True

    async def close(self) -> None:
        """
        Leave the checkout.

        Releases the timer so no tick fires afterwards. The draft stays in the
        session store so the checkout can be resumed; a submission already in
        flight is awaited rather than abandoned.
        """
        if self._state in (CheckoutState.ARMED, CheckoutState.COUNTING):
            self._stop_timer()
            self._state = CheckoutState.CLOSED
            logger.info("Checkout closed before the countdown finished")
        elif self._state is CheckoutState.IDLE:
            self._state = CheckoutState.CLOSED
        elif self._completion is not None:
            await asyncio.shield(self._completion)

    async def wait(self) -> Optional[CheckoutOutcome]:
        """Wait until the countdown has ended and any submission has finished."""
        if self._timer is not None:
            await asyncio.wait([self._timer])
        if self._completion is not None:
            return await asyncio.shield(self._completion)
        return self._outcome

    async def __aenter__(self) -> "CheckoutController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
