"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- Invalid status transitions rejected (enforced at service layer).
- Each status change, including creation, generates one history record.
- History contains old/new status, timestamp, actor, and notes.
- Idempotency via the ``payment_session_id`` unique constraint.
- Order number is a human-readable ``PREFIX-YYYY-NNNN`` identifier.
- Customer data and addresses are snapshots taken at order time, so guest
  checkout needs no customer profile.
- OrderItem snapshots product name/price at creation time.
- Orders are never deleted; a deleted user only nulls ``user``.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderSource,
    OrderStatus,
    OrderType,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 10, "decimal_places": 2}


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is the externally visible identifier; the UUIDv7
    ``id`` is used for all internal references and API lookups.

    ``payment_session_id`` is nullable: only orders created from a payment
    event carry one.  NULLs never collide on a UNIQUE column, so manual
    orders are unaffected.
    """

    order_number: models.CharField = models.CharField(max_length=32, unique=True)

    # Ownership (NULL for guest checkout)
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    order_type: models.CharField = models.CharField(
        max_length=20,
        choices=OrderType.choices,
        default=OrderType.GUEST,
    )

    # Customer snapshot
    customer_email: models.EmailField = models.EmailField()
    customer_first_name: models.CharField = models.CharField(max_length=150)
    customer_last_name: models.CharField = models.CharField(
        max_length=150, blank=True, default=""
    )
    customer_phone: models.CharField = models.CharField(
        max_length=40, blank=True, default=""
    )
    guest_email: models.EmailField = models.EmailField(blank=True, default="")

    # Shipping address
    shipping_street: models.CharField = models.CharField(max_length=255)
    shipping_city: models.CharField = models.CharField(max_length=120)
    shipping_postcode: models.CharField = models.CharField(max_length=20)
    shipping_country: models.CharField = models.CharField(max_length=2, default="GB")

    # Billing address (optional)
    billing_street: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    billing_city: models.CharField = models.CharField(
        max_length=120, blank=True, default=""
    )
    billing_postcode: models.CharField = models.CharField(
        max_length=20, blank=True, default=""
    )
    billing_country: models.CharField = models.CharField(
        max_length=2, blank=True, default=""
    )

    # Lifecycle
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    source: models.CharField = models.CharField(
        max_length=20,
        choices=OrderSource.choices,
        default=OrderSource.STRIPE,
    )

    # Money (major units)
    subtotal: models.DecimalField = models.DecimalField(**MONEY)
    shipping_cost: models.DecimalField = models.DecimalField(
        default=Decimal("0.00"), **MONEY
    )
    tax: models.DecimalField = models.DecimalField(default=Decimal("0.00"), **MONEY)
    total: models.DecimalField = models.DecimalField(**MONEY)
    currency: models.CharField = models.CharField(max_length=3, default="GBP")

    # Payment correlation
    payment_session_id: models.CharField = models.CharField(
        max_length=255, unique=True, null=True, blank=True
    )
    payment_intent_id: models.CharField = models.CharField(
        max_length=255, unique=True, null=True, blank=True
    )
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Fulfillment
    supplier_order_id: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    tracking_number: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    tracking_url: models.URLField = models.URLField(
        max_length=500, blank=True, default=""
    )
    carrier: models.CharField = models.CharField(max_length=100, blank=True, default="")
    shipped_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    delivered_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    cancelled_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    cancellation_reason: models.TextField = models.TextField(blank=True, default="")
    internal_notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["customer_email"], name="orders_email_idx"),
            models.Index(fields=["order_type"], name="orders_type_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def customer_name(self) -> str:
        return f"{self.customer_first_name} {self.customer_last_name}".strip()

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item snapshot.

    Name, sku and prices are copied from the payment event at purchase
    time and are never updated afterwards.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id: models.CharField = models.CharField(max_length=255)
    product_name: models.CharField = models.CharField(max_length=255)
    variant_name: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    sku: models.CharField = models.CharField(max_length=100)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(**MONEY)
    total_price: models.DecimalField = models.DecimalField(**MONEY)
    weight: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=3, null=True, blank=True
    )
    image_url: models.URLField = models.URLField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["product_id"], name="order_items_product_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} ({self.total_price})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Each record captures a single status change with the responsible actor
    and optional notes (e.g. cancellation reason).  ``old_status`` is
    ``None`` on the row written at creation.  ``created_by`` holds the
    actor id from the auth collaborator; ``None`` means the change was
    performed by the system (e.g. the payment webhook).

    Records are immutable: nothing updates or deletes them.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    notes: models.TextField = models.TextField(blank=True, default="")
    created_by: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        verbose_name_plural = "order status history"
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}: {self.old_status} -> {self.status}"
