"""Order service layer (Use Cases).

Orchestrates order creation from payment events, status management,
cancellation and the fulfillment read models.  The service defines the
unit-of-work boundary for every write.

Business rules enforced:
- One order per payment session: repeated or concurrent creation with the
  same ``payment_session_id`` returns the first order.
- Order numbers are unique; collisions are retried a bounded number of times.
- Status transitions are validated against the state machine while the
  order row is locked.
- SHIPPED requires a tracking number.
- Exactly one history row per accepted status change, creation included.
- Side effects (emails, loyalty) are recorded as outbox events in the same
  transaction and dispatched only after commit.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.core.outbox import schedule_outbox_dispatch
from modules.orders.constants import (
    DEFAULT_LIST_LIMIT,
    ORDER_NUMBER_MAX_RETRIES,
    SEARCH_RESULT_LIMIT,
    OrderStatus,
)
from modules.orders.events import OrderCancelled, OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    DuplicatePaymentIntent,
    InvalidOrderStatus,
    OrderNotFound,
    OrderNumberUnavailable,
    TrackingNumberRequired,
)
from modules.orders.numbering import OrderNumberGenerator

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO, OrderStatsDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives its repository (and optionally the number generator) via
    constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        number_generator: Optional[OrderNumberGenerator] = None,
    ) -> None:
        self._order_repo = order_repository
        self._numbers = number_generator or OrderNumberGenerator()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create an order idempotently.

        Steps:
        1. Return the existing order when the payment session was seen.
        2. Allocate an order number and persist order, items, the creation
           history row and an ``OrderCreated`` outbox event in one
           transaction.
        3. On a unique-constraint violation, return the concurrent winner
           if one exists for the session, otherwise retry with a new
           number.

        Raises:
            OrderNumberUnavailable: every attempt collided on the number.
        """
        log = logger.bind(
            payment_session_id=dto.payment_session_id,
            order_type=dto.order_type,
        )
        log.info("order.creation_started")

        existing = self._find_existing(dto.payment_session_id)
        if existing:
            log.info("order.idempotency_hit", order_id=str(existing.id))
            return existing

        data = dto.to_order_data()
        for attempt in range(1, ORDER_NUMBER_MAX_RETRIES + 1):
            order_number = self._numbers.next()
            try:
                with transaction.atomic():
                    order = self._persist_new_order(data, order_number)
            except IntegrityError:
                winner = self._find_existing(dto.payment_session_id)
                if winner:
                    log.info("order.idempotency_race", order_id=str(winner.id))
                    return winner
                if dto.payment_intent_id:
                    holder = self._order_repo.get_by_payment_intent_id(
                        dto.payment_intent_id
                    )
                    if holder:
                        log.warning(
                            "order.duplicate_payment_intent",
                            payment_intent_id=dto.payment_intent_id,
                            existing_order=holder.order_number,
                        )
                        raise DuplicatePaymentIntent(
                            dto.payment_intent_id, holder.order_number
                        )
                if not self._order_repo.order_number_exists(order_number):
                    raise
                log.warning(
                    "order.number_collision",
                    order_number=order_number,
                    attempt=attempt,
                )
                continue

            log.info(
                "order.created",
                order_id=str(order.id),
                order_number=order.order_number,
                total=str(order.total),
            )
            return self._order_repo.get_by_id(str(order.id)) or order

        log.error("order.number_exhausted", attempts=ORDER_NUMBER_MAX_RETRIES)
        raise OrderNumberUnavailable(
            f"No order number available after {ORDER_NUMBER_MAX_RETRIES} attempts."
        )

    @transaction.atomic
    def update_status(
        self,
        order_id: UUID,
        new_status: str,
        *,
        notes: str = "",
        actor_id: Optional[Any] = None,
        supplier_order_id: Optional[str] = None,
        tracking_number: Optional[str] = None,
        tracking_url: Optional[str] = None,
        carrier: Optional[str] = None,
    ) -> Order:
        """Transition an order to a new status.

        Validates the requested status and the tracking requirement before
        touching the database, then acquires a row-level lock
        (``SELECT FOR UPDATE``) and validates the transition against the
        locked state.  Records one history row and an
        ``OrderStatusChanged`` event.

        Raises:
            InvalidOrderStatus: unknown status or forbidden transition.
            TrackingNumberRequired: SHIPPED without a tracking number.
            OrderNotFound: order does not exist.
        """
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(f"Unknown order status {new_status!r}.")
        if new_status == OrderStatus.SHIPPED and not (tracking_number or "").strip():
            raise TrackingNumberRequired(
                "A tracking number is required to mark an order as shipped."
            )

        order = self._lock_order(order_id)
        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=new_status,
        )

        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(
                f"Cannot transition from {order.status} to {new_status}."
            )

        now = timezone.now()
        old_status = order.status
        order.status = new_status
        if new_status == OrderStatus.SHIPPED:
            order.shipped_at = now
            order.tracking_number = tracking_number.strip()
            if tracking_url is not None:
                order.tracking_url = tracking_url
            if carrier is not None:
                order.carrier = carrier
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = now
        elif new_status == OrderStatus.CANCELLED:
            order.cancelled_at = now
        if supplier_order_id is not None:
            order.supplier_order_id = supplier_order_id

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                old_status=old_status,
                new_status=new_status,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
            created_by=_actor(actor_id),
        )
        transaction.on_commit(schedule_outbox_dispatch, robust=True)

        log.info("order.status_updated", actor_id=_actor(actor_id))
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def cancel_order(
        self, order_id: UUID, reason: str, actor_id: Optional[Any] = None
    ) -> Order:
        """Cancel an order, recording the reason.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: cancellation not allowed from current status.
        """
        order = self._lock_order(order_id)
        log = logger.bind(order_id=str(order_id), current_status=order.status)

        if not order.can_transition_to(OrderStatus.CANCELLED):
            log.warning("order.cancel_not_allowed")
            raise InvalidOrderStatus(f"Cannot cancel order in status {order.status}.")

        old_status = order.status
        order.status = OrderStatus.CANCELLED
        order.cancellation_reason = reason
        order.cancelled_at = timezone.now()
        order.add_domain_event(OrderCancelled(aggregate_id=order.id, reason=reason))
        self._order_repo.save(order)

        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.CANCELLED,
            notes=reason or "Order cancelled",
            old_status=old_status,
            created_by=_actor(actor_id),
        )
        transaction.on_commit(schedule_outbox_dispatch, robust=True)

        log.info("order.cancelled", actor_id=_actor(actor_id))
        return self._order_repo.get_by_id(str(order_id))

    @transaction.atomic
    def add_internal_notes(self, order_id: UUID, notes: str) -> Order:
        """Replace the staff-only notes. Not a status change: no history row."""
        order = self._lock_order(order_id)
        order.internal_notes = notes
        self._order_repo.save(order)
        logger.info("order.notes_updated", order_id=str(order_id))
        return self._order_repo.get_by_id(str(order_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_by_order_number(self, order_number: str) -> Order:
        order = self._order_repo.get_by_order_number(order_number)
        if not order:
            raise OrderNotFound(f"Order {order_number} not found.")
        return order

    def get_by_payment_session_id(self, session_id: str) -> Optional[Order]:
        return self._order_repo.get_by_payment_session_id(session_id)

    def get_pending_orders(self) -> List[Order]:
        return self._order_repo.list_pending()

    def search_orders(self, query: str) -> List[Order]:
        return self._order_repo.search(query.strip(), limit=SEARCH_RESULT_LIMIT)

    def list_orders(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> Tuple[List[Order], int]:
        """Return a page of orders (newest first) and the total match count."""
        return self._order_repo.list_filtered(filters or {}, limit, offset)

    def get_stats(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> OrderStatsDTO:
        return self._order_repo.stats(date_from, date_to)

    def track_guest_order(self, email: str, order_number: str) -> Order:
        """Look up an order for a customer holding its number and email.

        Raises:
            OrderNotFound: no order matches both values.
        """
        order = self._order_repo.find_for_tracking(email, order_number)
        if not order:
            logger.info("order.tracking_miss", order_number=order_number)
            raise OrderNotFound("No order matches that email and order number.")
        return order

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find_existing(self, session_id: Optional[str]) -> Optional[Order]:
        if not session_id:
            return None
        return self._order_repo.get_by_payment_session_id(session_id)

    def _persist_new_order(self, data: Dict[str, Any], order_number: str) -> Order:
        order = self._order_repo.create(
            {**data, "order_number": order_number, "status": OrderStatus.PENDING}
        )
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.PENDING,
            notes=f"Order created ({order.order_type})",
        )
        order.add_domain_event(OrderCreated(aggregate_id=order.id))
        self._order_repo.save(order)
        transaction.on_commit(schedule_outbox_dispatch, robust=True)
        return order

    def _lock_order(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order


def _actor(actor_id: Optional[Any]) -> Optional[str]:
    return None if actor_id is None else str(actor_id)
