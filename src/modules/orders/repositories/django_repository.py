"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems) is persisted atomically.

Concurrency control on status updates uses ``select_for_update()``
to prevent race conditions (no ``version`` field exists on the model).
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, QuerySet, Sum

from modules.core.models import OutboxEvent
from modules.orders.constants import NON_REVENUE_STATES, OPEN_STATES
from modules.orders.dtos import OrderStatsDTO
from modules.orders.exceptions import InvalidOrderFilters
from modules.orders.filters import OrderFilter
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"
CENT = Decimal("0.01")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def _base_queryset(self) -> QuerySet:
        return Order.objects.prefetch_related("items", "status_history")

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` keys are ``Order`` columns (``user_id`` for the owner)
        plus ``items``: a list of dicts of ``OrderItem`` columns.
        """
        data = dict(data)
        items = data.pop("items", [])

        order = Order(**data)
        order.save()

        OrderItem.objects.bulk_create(
            [OrderItem(order=order, **item_data) for item_data in items]
        )

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and move its domain events into the outbox."""
        entity.save()

        events = entity.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic=OUTBOX_TOPIC,
            )
        entity.clear_domain_events()

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Append a status change to the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            status=status,
            notes=notes or "",
            created_by=created_by,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded items and history.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_order_number(self, order_number: str) -> Optional[Order]:
        return self._base_queryset().filter(order_number=order_number).first()

    def get_by_payment_session_id(self, session_id: str) -> Optional[Order]:
        return self._base_queryset().filter(payment_session_id=session_id).first()

    def get_by_payment_intent_id(self, intent_id: str) -> Optional[Order]:
        return self._base_queryset().filter(payment_intent_id=intent_id).first()

    def order_number_exists(self, order_number: str) -> bool:
        return Order.objects.filter(order_number=order_number).exists()

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside a transaction.  Returns ``None`` for
        non-existent or invalid IDs.
        """
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def find_for_tracking(self, email: str, order_number: str) -> Optional[Order]:
        return (
            self._base_queryset()
            .filter(order_number__iexact=order_number.strip())
            .filter(
                Q(guest_email__iexact=email.strip())
                | Q(customer_email__iexact=email.strip())
            )
            .first()
        )

    def list_pending(self) -> List[Order]:
        return list(
            self._base_queryset()
            .filter(status__in=OPEN_STATES)
            .order_by("created_at", "id")
        )

    def search(self, query: str, limit: int) -> List[Order]:
        condition = (
            Q(order_number__icontains=query)
            | Q(customer_email__icontains=query)
            | Q(customer_first_name__icontains=query)
            | Q(customer_last_name__icontains=query)
        )
        return list(
            self._base_queryset().filter(condition).order_by("-created_at", "-id")[
                :limit
            ]
        )

    def list_filtered(
        self, filters: Dict[str, Any], limit: int, offset: int
    ) -> Tuple[List[Order], int]:
        """Apply ``OrderFilter`` and return one page plus the total count.

        Raises:
            InvalidOrderFilters: a filter value failed validation.
        """
        filterset = OrderFilter(data=filters, queryset=self._base_queryset())
        if not filterset.is_valid():
            raise InvalidOrderFilters(dict(filterset.errors))

        queryset = filterset.qs.order_by("-created_at", "-id")
        total = queryset.count()
        return list(queryset[offset : offset + limit]), total

    def stats(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> OrderStatsDTO:
        queryset = Order.objects.all()
        if date_from is not None:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to is not None:
            queryset = queryset.filter(created_at__lte=date_to)

        by_status = {
            row["status"]: row["count"]
            for row in queryset.order_by()
            .values("status")
            .annotate(count=Count("id"))
        }
        totals = queryset.aggregate(
            total_orders=Count("id"),
            revenue=Sum("total", filter=~Q(status__in=NON_REVENUE_STATES)),
        )
        revenue = (totals["revenue"] or Decimal("0")).quantize(CENT)

        return OrderStatsDTO.build(
            total_orders=totals["total_orders"],
            by_status=by_status,
            total_revenue=revenue,
        )


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
