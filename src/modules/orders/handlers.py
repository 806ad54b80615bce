"""Event handlers for Orders domain events.

Handlers run from the outbox dispatcher after the producing transaction
committed, so they always see the persisted order.
"""

from __future__ import annotations

from typing import Optional

import structlog

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from modules.orders.loyalty import award_loyalty_points
from modules.orders.models import Order
from modules.orders.notifications import OrderNotifier
from modules.orders.repositories import OrderDjangoRepository
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class _OrderEventHandler:
    def __init__(self, notifier: Optional[OrderNotifier] = None) -> None:
        self.notifier = notifier or OrderNotifier()
        self.repository = OrderDjangoRepository()

    def _load(self, event) -> Optional[Order]:
        order = self.repository.get_by_id(str(event.aggregate_id))
        if order is None:
            logger.warning(
                "order.event_target_missing",
                event_name=event.event_name,
                order_id=str(event.aggregate_id),
            )
        return order


class OrderCreatedHandler(_OrderEventHandler, IEventHandler[OrderCreated]):
    def handle(self, event: OrderCreated) -> None:
        order = self._load(event)
        if order is None:
            return
        self.notifier.send_order_confirmation(order)
        self.notifier.send_admin_new_order(order)
        award_loyalty_points(order)
        logger.info("order.created_side_effects_done", order_id=str(order.id))


class OrderCancelledHandler(IEventHandler[OrderCancelled]):
    def handle(self, event: OrderCancelled) -> None:
        logger.info(
            "order.cancelled_received",
            order_id=str(event.aggregate_id),
            reason=event.reason,
        )


class OrderStatusChangedHandler(_OrderEventHandler, IEventHandler[OrderStatusChanged]):
    def handle(self, event: OrderStatusChanged) -> None:
        if event.new_status != OrderStatus.SHIPPED:
            return
        order = self._load(event)
        if order is None:
            return
        self.notifier.send_shipping_notification(order)


order_created_handler = OrderCreatedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_status_changed_handler = OrderStatusChangedHandler()
