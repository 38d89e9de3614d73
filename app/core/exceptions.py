"""Domain errors raised by the order and payment core.

Each error carries a stable ``code`` and the HTTP status the API layer maps it
to. Storage failures are not wrapped; they propagate as whatever the ORM raises.
"""
from typing import Optional


class CanteenError(Exception):
    """Base class for expected business outcomes."""

    code = "canteen_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInput(CanteenError):
    """Malformed or missing fields."""

    code = "invalid_input"
    status_code = 400


class NotFound(CanteenError):
    """Dangling reference to an outlet, menu item, order or transaction."""

    code = "not_found"
    status_code = 404


class InsufficientStock(CanteenError):
    """A reservation lost the race for stock."""

    code = "insufficient_stock"
    status_code = 409

    def __init__(self, message: str, menu_item_id=None, requested: Optional[int] = None) -> None:
        super().__init__(message)
        self.menu_item_id = menu_item_id
        self.requested = requested


class InvalidTransition(CanteenError):
    """Order state machine rule violated."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None, action: Optional[str] = None) -> None:
        super().__init__(message)
        self.current_status = current_status
        self.action = action


class VerificationFailed(CanteenError):
    """Payment signature did not verify. Message is deliberately generic."""

    code = "verification_failed"
    status_code = 400

    def __init__(self, message: str = "Payment verification failed") -> None:
        super().__init__(message)


class Unauthorized(CanteenError):
    """Actor lacks rights over the referenced outlet or order."""

    code = "unauthorized"
    status_code = 403


class GatewayError(CanteenError):
    """Outbound call to the payment gateway failed or timed out."""

    code = "gateway_error"
    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None) -> None:
        super().__init__(message)
        self.upstream_status = status_code
        self.response_body = response_body
