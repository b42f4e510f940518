"""
Order pricing shared by the checkout client and the order endpoint.

    subtotal = sum(price * quantity)
    gst      = subtotal * tax_rate
    delivery = delivery_fee if subtotal > 0 else 0
    total    = subtotal + gst + delivery, rounded to 2 decimals
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from quickbite.core.config import get_settings


@dataclass(frozen=True)
class OrderTotals:
    """Price breakdown of a cart."""
    subtotal: float
    tax: float
    delivery_fee: float
    total: float

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "delivery_fee": self.delivery_fee,
            "total": self.total,
        }


def cart_subtotal(lines: Iterable[tuple[float, int]]) -> float:
    """Sum of ``price * quantity`` over ``(price, quantity)`` pairs."""
    return sum(price * quantity for price, quantity in lines)


def calculate_order_totals(
    subtotal: float,
    tax_rate: Optional[float] = None,
    delivery_fee: Optional[float] = None,
) -> OrderTotals:
    """Calculate GST, delivery fee and grand total for a subtotal."""
    settings = get_settings()
    if tax_rate is None:
        tax_rate = settings.tax_rate
    if delivery_fee is None:
        delivery_fee = settings.delivery_fee

    tax = subtotal * tax_rate
    delivery = delivery_fee if subtotal > 0 else 0.0
    total = subtotal + tax + delivery

    return OrderTotals(
        subtotal=round(subtotal, 2),
        tax=round(tax, 2),
        delivery_fee=round(delivery, 2),
        total=round(total, 2),
    )
