"""Errors raised by the checkout client."""

from typing import Optional


class ClientError(Exception):
    """Base class for checkout client errors."""


class OrderApiError(ClientError):
    """The order API answered with an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class CheckoutRedirect(ClientError):
    """
    A precondition of checkout is not met.

    ``target`` names where the user can fix it: ``"login"`` or ``"cart"``.
    """

    LOGIN = "login"
    CART = "cart"

    def __init__(self, target: str, reason: str):
        super().__init__(reason)
        self.target = target
        self.reason = reason


class CheckoutStateError(ClientError):
    """An operation was requested in a state that does not allow it."""


class LoginRequired(CheckoutRedirect):
    def __init__(self, reason: str = "Please login to continue."):
        super().__init__(CheckoutRedirect.LOGIN, reason)
