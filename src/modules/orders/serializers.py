"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer; input serializers only check
request shape before the view calls the service.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, OrderStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class UpdateOrderStatusSerializer(serializers.Serializer):
    """Validates ``PATCH /orders/{id}/status/``.

    ``status`` must be a recognized value; the transition itself is
    checked by the service against the locked order.
    """

    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)
    supplier_order_id = serializers.CharField(
        required=False, allow_blank=True, max_length=100
    )
    tracking_number = serializers.CharField(
        required=False, allow_blank=True, max_length=100
    )
    tracking_url = serializers.URLField(required=False, allow_blank=True, max_length=500)
    carrier = serializers.CharField(required=False, allow_blank=True, max_length=100)


class InternalNotesSerializer(serializers.Serializer):
    notes = serializers.CharField(allow_blank=True)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField()


class OrderListParamsSerializer(serializers.Serializer):
    """Paging parameters for ``GET /orders/``; filters go to ``OrderFilter``."""

    limit = serializers.IntegerField(
        required=False,
        default=DEFAULT_LIST_LIMIT,
        min_value=1,
        max_value=MAX_LIST_LIMIT,
    )
    offset = serializers.IntegerField(required=False, default=0, min_value=0)


class StatsParamsSerializer(serializers.Serializer):
    date_from = serializers.DateTimeField(required=False)
    date_to = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        date_from = attrs.get("date_from")
        date_to = attrs.get("date_to")
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError("date_from must not be after date_to.")
        return attrs


class TrackOrderSerializer(serializers.Serializer):
    email = serializers.EmailField()
    order_number = serializers.CharField(max_length=32)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for the purchased line snapshot."""

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "variant_name",
            "sku",
            "quantity",
            "unit_price",
            "total_price",
            "weight",
            "image_url",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "status",
            "notes",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Full staff view of an order with nested items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "user_id",
            "order_type",
            "customer_email",
            "customer_first_name",
            "customer_last_name",
            "customer_phone",
            "guest_email",
            "shipping_street",
            "shipping_city",
            "shipping_postcode",
            "shipping_country",
            "billing_street",
            "billing_city",
            "billing_postcode",
            "billing_country",
            "status",
            "source",
            "subtotal",
            "shipping_cost",
            "tax",
            "total",
            "currency",
            "payment_session_id",
            "payment_intent_id",
            "paid_at",
            "supplier_order_id",
            "tracking_number",
            "tracking_url",
            "carrier",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "cancellation_reason",
            "internal_notes",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class TrackedOrderSerializer(serializers.ModelSerializer):
    """Customer-facing view: no payment ids, staff notes or actor ids."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "order_number",
            "status",
            "customer_first_name",
            "shipping_city",
            "shipping_postcode",
            "shipping_country",
            "subtotal",
            "shipping_cost",
            "tax",
            "total",
            "currency",
            "tracking_number",
            "tracking_url",
            "carrier",
            "shipped_at",
            "delivered_at",
            "cancelled_at",
            "created_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields

    def get_status_history(self, order: Order) -> list:
        return [
            {"status": entry.status, "created_at": entry.created_at}
            for entry in order.status_history.all()
        ]
