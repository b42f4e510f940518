"""
SQLAlchemy Database Models

- User: the authenticated caller that owns orders
- Order: the order record store, one row per distinct client key
- ContactMessage: submissions from the contact form

Version: 1.0.0
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Text,
    Enum,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.sql import func

from quickbite.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "Pending"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class User(Base):
    """Account that places orders. Sign-up and login live outside this service."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    api_token = Column(String(128), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.email}>"


class Order(Base):
    """
    Order record store.

    ``client_key`` is the idempotency token generated by the checkout client;
    the unique constraint on it guarantees at most one row per checkout attempt.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
    )

    # Primary Key
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # OWNERSHIP & IDEMPOTENCY
    # =========================================================================
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_key = Column(String(128), nullable=False, unique=True, index=True)
    request_fingerprint = Column(String(64), nullable=False)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(Text, nullable=False)  # JSON string of [{name, price, quantity}]
    total = Column(Float, nullable=False)

    # =========================================================================
    # CHECKOUT META
    # =========================================================================
    payment_method = Column(String(20), nullable=True)  # COD, UPI
    delivery_address = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def meta(self) -> dict:
        return {
            "payment_method": self.payment_method,
            "address": self.delivery_address,
            "notes": self.notes,
        }

    def __repr__(self):
        return f"<Order #{self.id} - {self.client_key} - {self.status.value}>"


class ContactMessage(Base):
    """Messages left through the contact form."""
    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ContactMessage #{self.id} - {self.email}>"
