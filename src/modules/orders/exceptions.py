"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from typing import Any, Dict


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """Unknown status value or a transition the state machine forbids."""


class TrackingNumberRequired(Exception):
    """An order cannot be marked SHIPPED without a tracking number."""


class InvalidOrderFilters(Exception):
    """List filters failed validation."""

    def __init__(self, errors: Dict[str, Any]) -> None:
        super().__init__(f"Invalid order filters: {errors}")
        self.errors = errors


class OrderNumberUnavailable(Exception):
    """No free order number was found within the retry budget."""


class DuplicatePaymentIntent(Exception):
    """Another order, from a different payment session, holds this payment intent."""

    def __init__(self, payment_intent_id: str, order_number: str) -> None:
        super().__init__(
            f"Payment intent {payment_intent_id} already belongs to order {order_number}."
        )
        self.payment_intent_id = payment_intent_id
        self.order_number = order_number
