"""Unit tests for order DTO validation."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.orders.constants import OrderStatus, OrderType
from modules.orders.dtos import CreateOrderItemDTO, OrderStatsDTO

pytestmark = pytest.mark.unit


# ===========================================================================
# CreateOrderDTO
# ===========================================================================


class TestTotalInvariant:
    def test_total_equal_to_components_is_accepted(self, make_order_dto):
        dto = make_order_dto()
        assert dto.total == dto.subtotal + dto.shipping_cost + dto.tax

    def test_rounding_within_one_penny_is_accepted(self, make_order_dto):
        dto = make_order_dto(total=Decimal("45.00"))
        assert dto.total == Decimal("45.00")

    def test_mismatched_total_is_rejected(self, make_order_dto):
        with pytest.raises(ValidationError, match="does not equal"):
            make_order_dto(total=Decimal("50.00"))

    def test_negative_money_is_rejected(self, make_order_dto):
        with pytest.raises(ValidationError):
            make_order_dto(
                shipping_cost=Decimal("-4.99"),
                total=Decimal("35.01"),
            )


class TestItems:
    def test_order_without_items_is_rejected(self, make_order_dto):
        with pytest.raises(ValidationError, match="at least one item"):
            make_order_dto(items=[])

    def test_quantity_must_be_positive(self, make_item_dto):
        with pytest.raises(ValidationError, match="Quantity"):
            make_item_dto(quantity=0)

    def test_negative_price_is_rejected(self, make_item_dto):
        with pytest.raises(ValidationError):
            make_item_dto(unit_price=Decimal("-1.00"))

    def test_item_is_immutable(self, make_item_dto):
        item = make_item_dto()
        with pytest.raises(ValidationError):
            item.quantity = 5

    def test_optional_fields_default(self):
        item = CreateOrderItemDTO(
            product_id="prod_1",
            product_name="Wraps",
            sku="WRP-1",
            quantity=1,
            unit_price=Decimal("5.00"),
            total_price=Decimal("5.00"),
        )
        assert item.variant_name == ""
        assert item.weight is None


class TestOwnership:
    def test_default_is_guest_order(self, make_order_dto):
        dto = make_order_dto()
        data = dto.to_order_data()

        assert dto.order_type == OrderType.GUEST
        assert data["order_type"] == OrderType.GUEST
        assert data["guest_email"] == "jane@example.com"

    def test_explicit_guest_email_is_kept(self, make_order_dto):
        data = make_order_dto(guest_email="other@example.com").to_order_data()
        assert data["guest_email"] == "other@example.com"

    def test_user_order_is_authenticated(self, make_order_dto):
        dto = make_order_dto(user_id=7, is_guest=False)
        data = dto.to_order_data()

        assert dto.order_type == OrderType.AUTHENTICATED
        assert data["user_id"] == 7
        assert data["guest_email"] == ""

    def test_guest_flag_wins_over_user_id(self, make_order_dto):
        assert make_order_dto(user_id=7, is_guest=True).order_type == OrderType.GUEST

    def test_missing_user_means_guest(self, make_order_dto):
        assert make_order_dto(is_guest=False).order_type == OrderType.GUEST


class TestOrderData:
    def test_currency_is_upper_cased(self, make_order_dto):
        assert make_order_dto(currency="gbp").to_order_data()["currency"] == "GBP"

    def test_items_are_flattened(self, make_order_dto):
        data = make_order_dto().to_order_data()

        assert data["items"][0]["sku"] == "GLV-12"
        assert data["items"][0]["quantity"] == 2
        assert "is_guest" not in data

    def test_invalid_email_is_rejected(self, make_order_dto):
        with pytest.raises(ValidationError):
            make_order_dto(customer_email="not-an-email")


# ===========================================================================
# OrderStatsDTO
# ===========================================================================


class TestOrderStatsDTO:
    def test_build_fills_missing_statuses_with_zero(self):
        stats = OrderStatsDTO.build(
            total_orders=3,
            by_status={OrderStatus.PENDING: 2, OrderStatus.SHIPPED: 1},
            total_revenue=Decimal("10.00"),
        )

        assert stats.by_status[OrderStatus.PENDING] == 2
        assert stats.by_status[OrderStatus.REFUNDED] == 0
        assert set(stats.by_status) == set(OrderStatus.values)
