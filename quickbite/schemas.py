"""
Pydantic Schemas for Request/Response Validation

Wire format follows the web client: camelCase keys (``clientKey``,
``paymentMethod``, ``createdAt``) on the outside, snake_case in Python.

Version: 1.0.0
"""

import hashlib
import json
import re
from datetime import datetime
from typing import Optional, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from quickbite.models import OrderStatus


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single line item in an order."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200, examples=["Pizza"])
    price: float = Field(..., ge=0, allow_inf_nan=False, examples=[200])
    quantity: int = Field(..., ge=1, examples=[2])

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


class OrderMeta(BaseModel):
    """Checkout details attached to an order."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    payment_method: Optional[str] = Field(
        None, alias="paymentMethod", max_length=20, examples=["COD", "UPI"]
    )
    address: Optional[str] = Field(None, max_length=500, examples=["12 MG Road"])
    notes: Optional[str] = Field(None, max_length=1000)


class OrderCreate(BaseModel):
    """Request schema for placing an order."""
    model_config = ConfigDict(populate_by_name=True)

    items: List[OrderItemCreate] = Field(..., min_length=1)
    total: float = Field(..., ge=0, allow_inf_nan=False, examples=[460.0])
    client_key: str = Field(..., alias="clientKey", max_length=128)
    meta: OrderMeta = Field(default_factory=OrderMeta)

    @field_validator("client_key")
    @classmethod
    def validate_client_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("clientKey must not be blank")
        return v

    @property
    def subtotal(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def items_json(self) -> str:
        return json.dumps([item.model_dump() for item in self.items])

    def fingerprint(self) -> str:
        """Stable digest of the payload, used to spot a key reused for another order."""
        canonical = json.dumps(
            {
                "items": [item.model_dump() for item in self.items],
                "total": round(self.total, 2),
                "meta": self.meta.model_dump(),
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ContactCreate(BaseModel):
    """Contact form submission."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=100, examples=["Asha Rao"])
    email: str = Field(..., max_length=255, examples=["asha@example.com"])
    message: str = Field(..., min_length=5, max_length=2000)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemOut(BaseModel):
    name: str
    price: float
    quantity: int


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    owner_id: int = Field(
        ..., validation_alias=AliasChoices("owner_id", "owner"), serialization_alias="owner"
    )
    items: List[OrderItemOut]
    total: float
    status: OrderStatus
    client_key: str = Field(
        ..., validation_alias=AliasChoices("client_key", "clientKey"), serialization_alias="clientKey"
    )
    meta: OrderMeta
    created_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("created_at", "createdAt"), serialization_alias="createdAt"
    )
    updated_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("updated_at", "updatedAt"), serialization_alias="updatedAt"
    )

    @field_validator("items", mode="before")
    @classmethod
    def decode_items(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v


class ContactResponse(BaseModel):
    success: bool
    message: str
    id: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    code: str
    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    timestamp: datetime
