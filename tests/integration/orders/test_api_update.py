"""Integration tests for Fulfillment API writes.

Covers:
- PATCH /api/v1/orders/{id}/status/
- PATCH /api/v1/orders/{id}/notes/
- POST  /api/v1/orders/{id}/cancel/
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from django.core import mail
from rest_framework import status

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderStatusHistory

pytestmark = pytest.mark.integration


def _status_url(order_id):
    return f"/api/v1/orders/{order_id}/status/"


def _notes_url(order_id):
    return f"/api/v1/orders/{order_id}/notes/"


def _cancel_url(order_id):
    return f"/api/v1/orders/{order_id}/cancel/"


# ===========================================================================
# PATCH /orders/{id}/status/
# ===========================================================================


class TestUpdateStatus:
    def test_processing(self, admin_client, create_order, staff_user):
        order = create_order()

        response = admin_client.patch(
            _status_url(order.id),
            {
                "status": "PROCESSING",
                "notes": "Sent to supplier",
                "supplier_order_id": "SUP-1",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == OrderStatus.PROCESSING
        assert response.data["supplier_order_id"] == "SUP-1"
        last = response.data["status_history"][-1]
        assert last["old_status"] == OrderStatus.PENDING
        assert last["notes"] == "Sent to supplier"
        assert last["created_by"] == str(staff_user.pk)

    def test_shipped_with_tracking(self, admin_client, create_order):
        order = create_order()

        response = admin_client.patch(
            _status_url(order.id),
            {
                "status": "SHIPPED",
                "tracking_number": "TRK123",
                "tracking_url": "https://track.example.com/TRK123",
                "carrier": "DPD",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["tracking_number"] == "TRK123"
        assert response.data["carrier"] == "DPD"
        assert response.data["shipped_at"] is not None

    def test_shipped_sends_email_after_commit(
        self, admin_client, create_order, django_capture_on_commit_callbacks
    ):
        order = create_order()

        with django_capture_on_commit_callbacks(execute=True):
            admin_client.patch(
                _status_url(order.id),
                {"status": "SHIPPED", "tracking_number": "TRK123"},
                format="json",
            )

        subjects = [message.subject for message in mail.outbox]
        assert f"Your Order Has Been Shipped - {order.order_number}" in subjects

    def test_shipped_without_tracking_is_400(self, admin_client, create_order):
        order = create_order()

        response = admin_client.patch(
            _status_url(order.id), {"status": "SHIPPED"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "tracking number" in response.data["detail"]
        assert Order.objects.get(pk=order.pk).status == OrderStatus.PENDING
        assert OrderStatusHistory.objects.filter(order=order).count() == 1

    def test_unknown_status_is_400(self, admin_client, create_order):
        order = create_order()

        response = admin_client.patch(
            _status_url(order.id), {"status": "LOST"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "status" in response.data

    def test_invalid_transition_is_400(self, admin_client, create_order):
        order = create_order()
        Order.objects.filter(pk=order.pk).update(status=OrderStatus.DELIVERED)

        response = admin_client.patch(
            _status_url(order.id), {"status": "PROCESSING"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "Cannot transition" in response.data["detail"]

    def test_invalid_tracking_url_is_400(self, admin_client, create_order):
        order = create_order()

        response = admin_client.patch(
            _status_url(order.id),
            {"status": "SHIPPED", "tracking_number": "T1", "tracking_url": "nope"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_order_is_404(self, admin_client):
        response = admin_client.patch(
            _status_url(uuid4()), {"status": "PROCESSING"}, format="json"
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_anonymous_is_401(self, api_client, create_order):
        order = create_order()

        response = api_client.patch(
            _status_url(order.id), {"status": "PROCESSING"}, format="json"
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ===========================================================================
# PATCH /orders/{id}/notes/
# ===========================================================================


class TestInternalNotes:
    def test_sets_notes_without_history(self, admin_client, create_order):
        order = create_order()

        response = admin_client.patch(
            _notes_url(order.id), {"notes": "Fragile, double box"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["internal_notes"] == "Fragile, double box"
        assert len(response.data["status_history"]) == 1

    def test_notes_can_be_cleared(self, admin_client, create_order):
        order = create_order()
        admin_client.patch(_notes_url(order.id), {"notes": "x"}, format="json")

        response = admin_client.patch(_notes_url(order.id), {"notes": ""}, format="json")

        assert response.data["internal_notes"] == ""

    def test_missing_notes_is_400(self, admin_client, create_order):
        order = create_order()
        response = admin_client.patch(_notes_url(order.id), {}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_order_is_404(self, admin_client):
        response = admin_client.patch(_notes_url(uuid4()), {"notes": "x"}, format="json")
        assert response.status_code == status.HTTP_404_NOT_FOUND


# ===========================================================================
# POST /orders/{id}/cancel/
# ===========================================================================


class TestCancelOrder:
    def test_cancel(self, admin_client, create_order, staff_user):
        order = create_order()

        response = admin_client.post(
            _cancel_url(order.id), {"reason": "Customer request"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == OrderStatus.CANCELLED
        assert response.data["cancellation_reason"] == "Customer request"
        assert response.data["cancelled_at"] is not None
        last = response.data["status_history"][-1]
        assert last["notes"] == "Customer request"
        assert last["created_by"] == str(staff_user.pk)

    def test_reason_is_required(self, admin_client, create_order):
        order = create_order()

        response = admin_client.post(_cancel_url(order.id), {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Order.objects.get(pk=order.pk).status == OrderStatus.PENDING

    def test_shipped_order_cannot_be_cancelled(self, admin_client, create_order):
        order = create_order()
        Order.objects.filter(pk=order.pk).update(status=OrderStatus.SHIPPED)

        response = admin_client.post(
            _cancel_url(order.id), {"reason": "Too late"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Order.objects.get(pk=order.pk).status == OrderStatus.SHIPPED

    def test_unknown_order_is_404(self, admin_client):
        response = admin_client.post(
            _cancel_url(uuid4()), {"reason": "x"}, format="json"
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND
