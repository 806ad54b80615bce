"""Integration tests for the read side of the Fulfillment API.

Covers:
- Authentication and staff-only access.
- GET /api/v1/orders/ with filters and paging.
- GET /api/v1/orders/pending/, /search/, /number/{n}/, /{id}/.
- GET /api/v1/orders/stats/.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from modules.orders.constants import OrderStatus
from modules.orders.models import Order

pytestmark = pytest.mark.integration

BASE = "/api/v1/orders/"


def _set_status(order, new_status):
    Order.objects.filter(pk=order.pk).update(status=new_status)


# ===========================================================================
# Access control
# ===========================================================================


class TestAccessControl:
    def test_anonymous_gets_401(self, api_client):
        assert api_client.get(BASE).status_code == status.HTTP_401_UNAUTHORIZED

    def test_non_staff_gets_403(self, customer_user):
        client = APIClient()
        client.force_authenticate(user=customer_user)

        assert client.get(BASE).status_code == status.HTTP_403_FORBIDDEN
        assert client.get(f"{BASE}stats/").status_code == status.HTTP_403_FORBIDDEN

    def test_staff_gets_200(self, admin_client):
        assert admin_client.get(BASE).status_code == status.HTTP_200_OK


# ===========================================================================
# GET /orders/
# ===========================================================================


class TestListOrders:
    def test_lists_newest_first_with_count(self, admin_client, create_order):
        first = create_order()
        second = create_order()

        response = admin_client.get(BASE)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["count"] == 2
        numbers = [o["order_number"] for o in response.data["results"]]
        assert numbers == [second.order_number, first.order_number]

    def test_order_payload_shape(self, admin_client, create_order):
        order = create_order()

        result = admin_client.get(BASE).data["results"][0]

        assert result["id"] == str(order.id)
        assert result["total"] == "44.99"
        assert result["status"] == OrderStatus.PENDING
        assert result["items"][0]["sku"] == "GLV-12"
        assert result["status_history"][0]["notes"] == "Order created (guest)"

    def test_filter_by_status(self, admin_client, create_order):
        shipped = create_order()
        create_order()
        _set_status(shipped, OrderStatus.SHIPPED)

        response = admin_client.get(BASE, {"status": "SHIPPED"})

        assert response.data["count"] == 1
        assert response.data["results"][0]["id"] == str(shipped.id)

    def test_filter_by_email_and_number(self, admin_client, create_order):
        order = create_order(customer_email="boxer@example.com")
        create_order()

        by_email = admin_client.get(BASE, {"customer_email": "boxer"})
        by_number = admin_client.get(BASE, {"order_number": order.order_number})

        assert by_email.data["count"] == 1
        assert by_number.data["count"] == 1

    def test_filter_by_date(self, admin_client, create_order):
        old = create_order()
        create_order()
        Order.objects.filter(pk=old.pk).update(
            created_at=timezone.now() - timedelta(days=30)
        )
        since = (timezone.now() - timedelta(days=1)).date().isoformat()

        response = admin_client.get(BASE, {"date_from": since})

        assert response.data["count"] == 1

    def test_limit_and_offset(self, admin_client, create_order):
        for _ in range(3):
            create_order()

        response = admin_client.get(BASE, {"limit": 2, "offset": 2})

        assert response.data["count"] == 3
        assert len(response.data["results"]) == 1

    @pytest.mark.parametrize("limit", [0, 201, "abc"])
    def test_invalid_limit_is_400(self, admin_client, limit):
        response = admin_client.get(BASE, {"limit": limit})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_invalid_status_filter_is_400(self, admin_client):
        response = admin_client.get(BASE, {"status": "LOST"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "status" in response.data["errors"]


# ===========================================================================
# Work queue / search / lookups
# ===========================================================================


class TestPending:
    def test_only_open_orders_oldest_first(self, admin_client, create_order):
        first = create_order()
        second = create_order()
        done = create_order()
        _set_status(done, OrderStatus.SHIPPED)

        response = admin_client.get(f"{BASE}pending/")

        assert response.status_code == status.HTTP_200_OK
        ids = [o["id"] for o in response.data["results"]]
        assert ids == [str(first.id), str(second.id)]


class TestSearch:
    def test_search_by_last_name(self, admin_client, create_order):
        order = create_order(customer_last_name="Balboa")
        create_order()

        response = admin_client.get(f"{BASE}search/", {"q": "balb"})

        assert response.status_code == status.HTTP_200_OK
        assert [o["id"] for o in response.data["results"]] == [str(order.id)]

    def test_search_is_capped_at_twenty(self, admin_client, create_order):
        for _ in range(21):
            create_order()

        response = admin_client.get(f"{BASE}search/", {"q": "example.com"})

        assert response.data["count"] == 20

    @pytest.mark.parametrize("params", [{}, {"q": "   "}])
    def test_missing_query_is_400(self, admin_client, params):
        response = admin_client.get(f"{BASE}search/", params)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestLookups:
    def test_by_number(self, admin_client, create_order):
        order = create_order()

        response = admin_client.get(f"{BASE}number/{order.order_number}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(order.id)

    def test_by_number_not_found(self, admin_client):
        response = admin_client.get(f"{BASE}number/FB-1999-0001/")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data == {"detail": "Order not found."}

    def test_retrieve(self, admin_client, create_order):
        order = create_order()

        response = admin_client.get(f"{BASE}{order.id}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["order_number"] == order.order_number

    @pytest.mark.parametrize("order_id", [str(uuid4()), "not-a-uuid"])
    def test_retrieve_not_found(self, admin_client, order_id):
        response = admin_client.get(f"{BASE}{order_id}/")
        assert response.status_code == status.HTTP_404_NOT_FOUND


# ===========================================================================
# GET /orders/stats/
# ===========================================================================


class TestStats:
    def test_counts_and_revenue(self, admin_client, create_order):
        create_order()
        cancelled = create_order()
        _set_status(cancelled, OrderStatus.CANCELLED)

        response = admin_client.get(f"{BASE}stats/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total_orders"] == 2
        assert response.data["total_revenue"] == "44.99"
        assert response.data["by_status"]["PENDING"] == 1
        assert response.data["by_status"]["CANCELLED"] == 1
        assert response.data["by_status"]["REFUNDED"] == 0

    def test_date_window(self, admin_client, create_order):
        old = create_order()
        create_order()
        Order.objects.filter(pk=old.pk).update(
            created_at=timezone.now() - timedelta(days=30)
        )
        since = (timezone.now() - timedelta(days=1)).isoformat()

        response = admin_client.get(f"{BASE}stats/", {"date_from": since})

        assert response.data["total_orders"] == 1

    def test_inverted_range_is_400(self, admin_client):
        response = admin_client.get(
            f"{BASE}stats/",
            {"date_from": "2025-02-01T00:00:00Z", "date_to": "2025-01-01T00:00:00Z"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
