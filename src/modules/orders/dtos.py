"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the callers (API views, the payment
webhook adapter) and the Service layer.  DTOs are immutable
(``frozen=True``).

- ``CreateOrderItemDTO``: a single line item snapshot.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``OrderStatsDTO``: aggregate counts and revenue.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from modules.orders.constants import OrderSource, OrderStatus, OrderType

TOTAL_TOLERANCE = Decimal("0.01")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable snapshot of one purchased line."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    product_name: str
    variant_name: str = ""
    sku: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    weight: Optional[Decimal] = None
    image_url: str = ""

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("unit_price", "total_price")
    @classmethod
    def price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Prices cannot be negative.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation.

    Validates:
    - ``items`` must contain at least one item.
    - Money fields are non-negative.
    - ``total`` equals ``subtotal + shipping_cost + tax`` within 0.01.
    """

    model_config = ConfigDict(frozen=True)

    # Customer snapshot
    customer_email: EmailStr
    customer_first_name: str
    customer_last_name: str = ""
    customer_phone: str = ""

    # Ownership
    user_id: Optional[int] = None
    is_guest: bool = True
    guest_email: Optional[str] = None

    # Addresses
    shipping_street: str
    shipping_city: str
    shipping_postcode: str
    shipping_country: str = "GB"
    billing_street: str = ""
    billing_city: str = ""
    billing_postcode: str = ""
    billing_country: str = ""

    # Money
    subtotal: Decimal
    shipping_cost: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    total: Decimal
    currency: str = "GBP"

    # Payment correlation
    payment_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    source: OrderSource = OrderSource.STRIPE

    items: List[CreateOrderItemDTO] = Field(default_factory=list)

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("subtotal", "shipping_cost", "tax", "total")
    @classmethod
    def money_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Monetary amounts cannot be negative.")
        return v

    @model_validator(mode="after")
    def total_must_match_components(self):
        expected = self.subtotal + self.shipping_cost + self.tax
        if abs(self.total - expected) > TOTAL_TOLERANCE:
            raise ValueError(
                f"Total {self.total} does not equal subtotal + shipping + tax "
                f"({expected})."
            )
        return self

    @property
    def order_type(self) -> str:
        if self.is_guest or self.user_id is None:
            return OrderType.GUEST
        return OrderType.AUTHENTICATED

    def to_order_data(self) -> Dict:
        """Flatten into the keyword dict ``IOrderRepository.create`` expects."""
        data = self.model_dump(exclude={"is_guest", "items"})
        data["order_type"] = self.order_type
        if self.order_type == OrderType.GUEST:
            data["guest_email"] = self.guest_email or self.customer_email
        else:
            data["guest_email"] = ""
        data["currency"] = self.currency.upper()
        data["source"] = str(self.source)
        data["items"] = [item.model_dump() for item in self.items]
        return data


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderStatsDTO(BaseModel):
    """Immutable aggregate statistics over a date range."""

    model_config = ConfigDict(frozen=True)

    total_orders: int
    by_status: Dict[str, int]
    total_revenue: Decimal

    @classmethod
    def build(
        cls, total_orders: int, by_status: Dict[str, int], total_revenue: Decimal
    ) -> OrderStatsDTO:
        """Fill every status with a count, zero when absent."""
        counts = {status: by_status.get(status, 0) for status in OrderStatus.values}
        return cls(
            total_orders=total_orders,
            by_status=counts,
            total_revenue=total_revenue,
        )
