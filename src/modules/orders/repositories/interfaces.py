"""Order repository interface.

Extends ``IRepository[Order]`` with the methods required by the Order
aggregate: atomic creation with items, status history tracking,
payment-session look-up, row locking, and the read models used by the
fulfillment API.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import OrderStatsDTO
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the order columns plus ``items`` (list of dicts
        with the line item columns) and optionally ``user_id``.
        """

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Append a status change to the order's audit trail."""

    @abstractmethod
    def get_by_order_number(self, order_number: str) -> Optional[Order]:
        """Retrieve an order by its human-readable number."""

    @abstractmethod
    def get_by_payment_session_id(self, session_id: str) -> Optional[Order]:
        """Retrieve an order by its payment-session id (idempotency key)."""

    @abstractmethod
    def get_by_payment_intent_id(self, intent_id: str) -> Optional[Order]:
        """Retrieve an order by its payment-intent id."""

    @abstractmethod
    def order_number_exists(self, order_number: str) -> bool:
        """Whether an order already holds *order_number*."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock for the transaction."""

    @abstractmethod
    def find_for_tracking(self, email: str, order_number: str) -> Optional[Order]:
        """Match an order number (case-insensitive) with its guest or customer email."""

    @abstractmethod
    def list_pending(self) -> List[Order]:
        """Orders awaiting fulfillment, oldest first."""

    @abstractmethod
    def search(self, query: str, limit: int) -> List[Order]:
        """Substring search over number, email and customer name, newest first."""

    @abstractmethod
    def list_filtered(
        self, filters: Dict[str, Any], limit: int, offset: int
    ) -> Tuple[List[Order], int]:
        """Filtered page of orders (newest first) and the total match count."""

    @abstractmethod
    def stats(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> OrderStatsDTO:
        """Counts per status and revenue within an optional created_at range."""
