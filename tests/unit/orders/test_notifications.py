"""Unit tests for order emails and loyalty awards."""

from __future__ import annotations

from unittest import mock

import pytest
from django.core import mail

from modules.orders.loyalty import award_loyalty_points, get_loyalty_backend
from modules.orders.notifications import OrderNotifier

pytestmark = pytest.mark.unit


@pytest.fixture()
def notifier():
    return OrderNotifier()


def _boom(order):
    raise RuntimeError("ledger offline")


# ===========================================================================
# OrderNotifier
# ===========================================================================


class TestOrderConfirmation:
    def test_sends_to_customer(self, notifier, create_order):
        order = create_order()

        assert notifier.send_order_confirmation(order) is True

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ["jane@example.com"]
        assert message.subject == f"Order Confirmation - {order.order_number}"
        assert message.from_email == "orders@example.com"
        assert "Boxing Gloves" in message.body
        assert "1 High Street" in message.body
        assert "44.99" in message.body

    def test_delivery_failure_returns_false(self, notifier, create_order):
        order = create_order()

        with mock.patch(
            "modules.orders.notifications.send_mail",
            side_effect=ConnectionRefusedError("smtp down"),
        ):
            assert notifier.send_order_confirmation(order) is False

        assert mail.outbox == []


class TestAdminNotification:
    def test_sends_to_configured_admin(self, notifier, create_order):
        order = create_order()

        assert notifier.send_admin_new_order(order) is True

        message = mail.outbox[0]
        assert message.to == ["admin@example.com"]
        assert message.subject == f"New Order: {order.order_number} - 44.99 GBP"

    def test_skipped_without_admin_address(self, notifier, create_order, settings):
        settings.ORDER_ADMIN_EMAIL = ""
        order = create_order()

        assert notifier.send_admin_new_order(order) is False
        assert mail.outbox == []


class TestShippingNotification:
    def test_includes_tracking_details(self, notifier, order_service, create_order):
        order = create_order()
        shipped = order_service.update_status(
            order.id,
            "SHIPPED",
            tracking_number="TRK123",
            tracking_url="https://track.example.com/TRK123",
            carrier="Royal Mail",
        )

        assert notifier.send_shipping_notification(shipped) is True

        message = mail.outbox[0]
        assert message.subject == (
            f"Your Order Has Been Shipped - {order.order_number}"
        )
        assert "TRK123" in message.body
        assert "https://track.example.com/TRK123" in message.body
        assert "Royal Mail" in message.body


# ===========================================================================
# Loyalty
# ===========================================================================


class TestLoyalty:
    def test_disabled_without_backend(self, settings):
        settings.ORDER_LOYALTY_BACKEND = ""
        assert get_loyalty_backend() is None

    def test_awards_authenticated_order(self, settings, create_order, customer_user):
        settings.ORDER_LOYALTY_BACKEND = "builtins.bool"
        order = create_order(user_id=customer_user.pk, is_guest=False)

        assert award_loyalty_points(order) is True

    def test_guest_order_earns_nothing(self, settings, create_order):
        settings.ORDER_LOYALTY_BACKEND = "builtins.bool"
        order = create_order()

        assert award_loyalty_points(order) is False

    def test_backend_failure_is_contained(self, create_order, customer_user):
        order = create_order(user_id=customer_user.pk, is_guest=False)

        with mock.patch(
            "modules.orders.loyalty.get_loyalty_backend", return_value=_boom
        ):
            assert award_loyalty_points(order) is False

    def test_unimportable_backend_is_contained(
        self, settings, create_order, customer_user
    ):
        settings.ORDER_LOYALTY_BACKEND = "nowhere.award"
        order = create_order(user_id=customer_user.pk, is_guest=False)

        assert award_loyalty_points(order) is False
