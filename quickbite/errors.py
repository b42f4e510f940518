"""
API error types and validation error classification.

Every failure leaves the service as JSON::

    {"success": false, "code": "EMPTY_ITEMS", "message": "..."}
"""

from typing import Any, Optional, Sequence


class APIError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "code": self.code, "message": self.message}


class OrderValidationError(APIError):
    status_code = 422
    code = "INVALID_REQUEST"


class AuthenticationError(APIError):
    status_code = 401
    code = "UNAUTHENTICATED"


class IdempotencyConflict(APIError):
    status_code = 409
    code = "IDEMPOTENCY_KEY_CONFLICT"


class OrderNotFound(APIError):
    status_code = 404
    code = "ORDER_NOT_FOUND"


class OrderStoreError(APIError):
    status_code = 500
    code = "ORDER_STORE_ERROR"


# =============================================================================
# REQUEST VALIDATION CLASSIFICATION
# =============================================================================

_ITEM_FIELD_CODES = {
    "quantity": ("INVALID_QUANTITY", "Item quantity must be a whole number of at least 1"),
    "price": ("INVALID_PRICE", "Item price must be a number of zero or more"),
    "name": ("INVALID_ITEM_NAME", "Item name is required"),
}

_FIELD_CODES = {
    "clientKey": ("MISSING_CLIENT_KEY", "clientKey is required"),
    "client_key": ("MISSING_CLIENT_KEY", "clientKey is required"),
    "total": ("INVALID_TOTAL", "Order total must be a number of zero or more"),
    "name": ("INVALID_NAME", "Name must be between 2 and 100 characters"),
    "email": ("INVALID_EMAIL", "Please provide a valid email address"),
    "message": ("INVALID_MESSAGE", "Message must be between 5 and 2000 characters"),
}


def classify_validation_error(errors: Sequence[dict]) -> OrderValidationError:
    """
    Turn pydantic/FastAPI validation errors into a single coded error.

    Only the first error decides the code so that each kind of bad input
    gets its own stable code.
    """
    if not errors:
        return OrderValidationError("Invalid request")

    first = errors[0]
    loc = [part for part in first.get("loc", ()) if part != "body"]
    error_type = first.get("type", "")

    if loc and loc[0] == "items":
        if len(loc) == 1:
            if error_type in ("too_short", "missing"):
                return OrderValidationError(
                    "Order must contain at least one item", code="EMPTY_ITEMS"
                )
            return OrderValidationError("items must be a list of line items", code="INVALID_ITEMS")
        field = loc[-1]
        if field in _ITEM_FIELD_CODES:
            code, message = _ITEM_FIELD_CODES[field]
            return OrderValidationError(message, code=code)
        return OrderValidationError("Invalid line item", code="INVALID_ITEMS")

    if loc and loc[0] == "meta":
        return OrderValidationError(first.get("msg", "Invalid order details"), code="INVALID_META")

    field = loc[-1] if loc else None
    if isinstance(field, str) and field in _FIELD_CODES:
        code, message = _FIELD_CODES[field]
        return OrderValidationError(message, code=code)

    return OrderValidationError(first.get("msg", "Invalid request"))
