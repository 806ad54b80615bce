import hashlib
import hmac
import itertools
import time
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService

User = get_user_model()


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def staff_user():
    return User.objects.create_user(
        username="fulfillment", password="testpass123", is_staff=True
    )


@pytest.fixture()
def customer_user():
    return User.objects.create_user(username="member", password="testpass123")


@pytest.fixture()
def admin_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture()
def order_service():
    return OrderService(order_repository=OrderDjangoRepository())


def item_dto(**overrides) -> CreateOrderItemDTO:
    data = {
        "product_id": "prod_gloves",
        "product_name": "Boxing Gloves",
        "variant_name": "12oz",
        "sku": "GLV-12",
        "quantity": 2,
        "unit_price": Decimal("20.00"),
        "total_price": Decimal("40.00"),
    }
    data.update(overrides)
    return CreateOrderItemDTO(**data)


@pytest.fixture()
def make_order_dto():
    """Factory for a valid guest order paid through a checkout session.

    Each call gets its own session and payment-intent ids unless they are
    overridden.
    """
    counter = itertools.count(1)

    def _make(**overrides) -> CreateOrderDTO:
        n = next(counter)
        data = {
            "customer_email": "jane@example.com",
            "customer_first_name": "Jane",
            "customer_last_name": "Doe",
            "shipping_street": "1 High Street",
            "shipping_city": "London",
            "shipping_postcode": "SW1A 1AA",
            "subtotal": Decimal("40.00"),
            "shipping_cost": Decimal("4.99"),
            "tax": Decimal("0.00"),
            "total": Decimal("44.99"),
            "payment_session_id": f"cs_test_{n:04d}",
            "payment_intent_id": f"pi_test_{n:04d}",
            "items": [item_dto()],
        }
        data.update(overrides)
        return CreateOrderDTO(**data)

    return _make


@pytest.fixture()
def create_order(order_service, make_order_dto):
    def _create(**overrides):
        return order_service.create_order(make_order_dto(**overrides))

    return _create


@pytest.fixture()
def make_item_dto():
    return item_dto


@pytest.fixture()
def checkout_session():
    """Factory for an expanded Stripe checkout session, as a plain dict.

    Amounts are minor units; the defaults match ``make_order_dto``.
    """

    def _make(**overrides):
        session = {
            "id": "cs_test_abc",
            "object": "checkout.session",
            "amount_subtotal": 4000,
            "amount_total": 4499,
            "currency": "gbp",
            "total_details": {"amount_shipping": 499, "amount_tax": 0},
            "payment_intent": "pi_test_abc",
            "metadata": {},
            "customer_details": {
                "email": "jane@example.com",
                "name": "Jane Doe",
                "phone": "+447700900123",
                "address": {
                    "line1": "10 Billing Road",
                    "line2": None,
                    "city": "Leeds",
                    "postal_code": "LS1 1AA",
                    "country": "GB",
                },
            },
            "shipping_details": {
                "name": "Jane Doe",
                "address": {
                    "line1": "1 High Street",
                    "line2": "Flat 2",
                    "city": "London",
                    "postal_code": "SW1A 1AA",
                    "country": "GB",
                },
            },
            "line_items": {
                "object": "list",
                "data": [
                    {
                        "description": "Boxing Gloves",
                        "quantity": 2,
                        "amount_total": 4000,
                        "price": {
                            "product": "prod_gloves",
                            "unit_amount": 2000,
                            "nickname": "12oz",
                            "metadata": {"sku": "GLV-12", "weight": "0.450"},
                        },
                    }
                ],
            },
        }
        session.update(overrides)
        return session

    return _make


def sign_payload(payload: str, secret: str = "whsec_test", timestamp=None) -> str:
    """Build a ``Stripe-Signature`` header for *payload*."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture()
def stripe_signature():
    return sign_payload


@pytest.fixture()
def stripe_event():
    """Factory for a webhook event envelope around *obj*."""

    def _make(event_type, obj):
        return {
            "id": "evt_test_1",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }

    return _make
