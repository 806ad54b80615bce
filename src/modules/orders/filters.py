import django_filters

from modules.orders.constants import OrderStatus
from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(field_name="status", choices=OrderStatus.choices)
    customer_email = django_filters.CharFilter(
        field_name="customer_email", lookup_expr="icontains"
    )
    order_number = django_filters.CharFilter(field_name="order_number", lookup_expr="exact")
    date_from = django_filters.DateTimeFilter(field_name="created_at", lookup_expr="gte")
    date_to = django_filters.DateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "customer_email",
            "order_number",
            "date_from",
            "date_to",
        ]
