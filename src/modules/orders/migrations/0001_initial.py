from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import uuid6
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("PENDING", "Pending"),
    ("PROCESSING", "Processing"),
    ("SHIPPED", "Shipped"),
    ("DELIVERED", "Delivered"),
    ("CANCELLED", "Cancelled"),
    ("REFUNDED", "Refunded"),
]


def base_fields():
    return [
        (
            "id",
            models.UUIDField(
                default=uuid6.uuid7,
                editable=False,
                primary_key=True,
                serialize=False,
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                *base_fields(),
                ("order_number", models.CharField(max_length=32, unique=True)),
                (
                    "order_type",
                    models.CharField(
                        choices=[("guest", "Guest"), ("authenticated", "Authenticated")],
                        default="guest",
                        max_length=20,
                    ),
                ),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_first_name", models.CharField(max_length=150)),
                (
                    "customer_last_name",
                    models.CharField(blank=True, default="", max_length=150),
                ),
                (
                    "customer_phone",
                    models.CharField(blank=True, default="", max_length=40),
                ),
                (
                    "guest_email",
                    models.EmailField(blank=True, default="", max_length=254),
                ),
                ("shipping_street", models.CharField(max_length=255)),
                ("shipping_city", models.CharField(max_length=120)),
                ("shipping_postcode", models.CharField(max_length=20)),
                ("shipping_country", models.CharField(default="GB", max_length=2)),
                (
                    "billing_street",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "billing_city",
                    models.CharField(blank=True, default="", max_length=120),
                ),
                (
                    "billing_postcode",
                    models.CharField(blank=True, default="", max_length=20),
                ),
                (
                    "billing_country",
                    models.CharField(blank=True, default="", max_length=2),
                ),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES, default="PENDING", max_length=20
                    ),
                ),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("STRIPE", "Stripe"),
                            ("MANUAL", "Manual"),
                            ("ADMIN", "Admin"),
                        ],
                        default="STRIPE",
                        max_length=20,
                    ),
                ),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "shipping_cost",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=10
                    ),
                ),
                (
                    "tax",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), max_digits=10
                    ),
                ),
                ("total", models.DecimalField(decimal_places=2, max_digits=10)),
                ("currency", models.CharField(default="GBP", max_length=3)),
                (
                    "payment_session_id",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                (
                    "payment_intent_id",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "supplier_order_id",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "tracking_number",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "tracking_url",
                    models.URLField(blank=True, default="", max_length=500),
                ),
                ("carrier", models.CharField(blank=True, default="", max_length=100)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("internal_notes", models.TextField(blank=True, default="")),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="orders_status_idx"),
                    models.Index(fields=["-created_at"], name="orders_created_idx"),
                    models.Index(fields=["customer_email"], name="orders_email_idx"),
                    models.Index(fields=["order_type"], name="orders_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                *base_fields(),
                ("product_id", models.CharField(max_length=255)),
                ("product_name", models.CharField(max_length=255)),
                (
                    "variant_name",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("sku", models.CharField(max_length=100)),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=1,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=10)),
                (
                    "weight",
                    models.DecimalField(
                        blank=True, decimal_places=3, max_digits=10, null=True
                    ),
                ),
                (
                    "image_url",
                    models.URLField(blank=True, default="", max_length=500),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["product_id"], name="order_items_product_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gte=1),
                        name="order_items_quantity_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderStatusHistory",
            fields=[
                *base_fields(),
                (
                    "old_status",
                    models.CharField(
                        blank=True, choices=STATUS_CHOICES, max_length=20, null=True
                    ),
                ),
                ("status", models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "created_by",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "db_table": "order_status_history",
                "ordering": ["created_at", "id"],
                "verbose_name_plural": "order status history",
                "indexes": [
                    models.Index(
                        fields=["order", "created_at"],
                        name="osh_order_created_idx",
                    ),
                ],
            },
        ),
    ]
