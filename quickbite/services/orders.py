"""
Order Service

Idempotent order placement and owner-scoped order queries.

Placement strategy: attempt the insert and, when the unique constraint on
``client_key`` rejects it, load and return the row that won. Two concurrent
submissions carrying the same key therefore resolve to a single order without
either caller seeing an error.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quickbite.core.config import get_settings
from quickbite.errors import (
    IdempotencyConflict,
    OrderNotFound,
    OrderStoreError,
    OrderValidationError,
)
from quickbite.models import Order, OrderStatus, User
from quickbite.pricing import calculate_order_totals
from quickbite.schemas import OrderCreate

logger = logging.getLogger(__name__)


def check_order_total(order_data: OrderCreate) -> None:
    """
    Compare the submitted total with the server's pricing.

    The client's total is authoritative unless ``verify_order_totals`` is on;
    otherwise a disagreement is only logged.
    """
    settings = get_settings()
    expected = calculate_order_totals(order_data.subtotal)
    difference = abs(expected.total - order_data.total)
    if difference <= settings.total_tolerance:
        return

    if settings.verify_order_totals:
        raise OrderValidationError(
            f"Order total {order_data.total:.2f} does not match {expected.total:.2f}",
            code="TOTAL_MISMATCH",
        )
    logger.warning(
        f"Total mismatch for clientKey {order_data.client_key}: "
        f"submitted {order_data.total:.2f}, computed {expected.total:.2f}"
    )


async def get_order_by_client_key(db: AsyncSession, client_key: str) -> Optional[Order]:
    result = await db.execute(select(Order).where(Order.client_key == client_key))
    return result.scalar_one_or_none()


def _ensure_same_request(existing: Order, owner_id: int, fingerprint: str) -> None:
    if existing.owner_id != owner_id:
        raise IdempotencyConflict("This clientKey is already in use.")
    if existing.request_fingerprint != fingerprint:
        raise IdempotencyConflict(
            "This clientKey was already used for a different order."
        )


async def place_order(
    db: AsyncSession,
    owner: User,
    order_data: OrderCreate,
) -> tuple[Order, bool]:
    """
    Create the order for ``order_data.client_key`` or return the existing one.

    Returns:
        (order, created) where ``created`` is False for a replayed key.

    Raises:
        OrderValidationError: total rejected by server-side verification
        IdempotencyConflict: key already used by another user or payload
        OrderStoreError: any other storage failure
    """
    check_order_total(order_data)
    fingerprint = order_data.fingerprint()
    # rollback expires every instance in the session, owner included
    owner_id = owner.id

    new_order = Order(
        owner_id=owner_id,
        client_key=order_data.client_key,
        request_fingerprint=fingerprint,
        items=order_data.items_json(),
        total=round(order_data.total, 2),
        payment_method=order_data.meta.payment_method,
        delivery_address=order_data.meta.address,
        notes=order_data.meta.notes,
        status=OrderStatus.PENDING,
    )
    db.add(new_order)

    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        existing = await get_order_by_client_key(db, order_data.client_key)
        if existing is None:
            logger.error(f"Integrity error not caused by clientKey: {exc}")
            raise OrderStoreError("Failed to place order.") from exc
        _ensure_same_request(existing, owner_id, fingerprint)
        logger.info(
            f"clientKey {order_data.client_key} already placed as order #{existing.id}"
        )
        return existing, False
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception(f"Order store failure: {exc}")
        raise OrderStoreError("Failed to place order.") from exc

    await db.refresh(new_order)
    logger.info(
        f"Order #{new_order.id} created for user #{owner_id} "
        f"(total={new_order.total:.2f}, clientKey={new_order.client_key})"
    )
    return new_order, True


async def list_orders_for_owner(
    db: AsyncSession,
    owner: User,
    skip: int = 0,
    limit: int = 100,
    status: Optional[OrderStatus] = None,
) -> Sequence[Order]:
    """The owner's orders, newest first."""
    query = (
        select(Order)
        .where(Order.owner_id == owner.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    if status is not None:
        query = query.where(Order.status == status)

    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


async def get_order_for_owner(db: AsyncSession, owner: User, order_id: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.owner_id == owner.id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(f"Order #{order_id} not found")
    return order
