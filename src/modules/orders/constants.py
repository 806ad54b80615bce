"""Order domain constants.

Defines status choices and the valid status transitions for the order
state machine.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"
    REFUNDED = "REFUNDED", "Refunded"


class OrderSource(models.TextChoices):
    STRIPE = "STRIPE", "Stripe"
    MANUAL = "MANUAL", "Manual"
    ADMIN = "ADMIN", "Admin"


class OrderType(models.TextChoices):
    GUEST = "guest", "Guest"
    AUTHENTICATED = "authenticated", "Authenticated"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

TERMINAL_STATES: set[str] = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
}

# Orders still awaiting fulfillment (FIFO work queue).
OPEN_STATES: tuple[str, ...] = (OrderStatus.PENDING, OrderStatus.PROCESSING)

# Orders whose total is excluded from revenue.
NON_REVENUE_STATES: tuple[str, ...] = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

ORDER_NUMBER_MAX_RETRIES = 5
ORDER_NUMBER_SEQUENCE_DIGITS = 4

SEARCH_RESULT_LIMIT = 20
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200
