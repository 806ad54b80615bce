"""Loyalty points collaborator.

The points ledger lives outside this service.  ``ORDER_LOYALTY_BACKEND``
names a callable ``award(order) -> bool`` by dotted path; an empty value
disables awards.
"""

from __future__ import annotations

from typing import Callable, Optional

import structlog
from django.conf import settings
from django.utils.module_loading import import_string

from modules.orders.constants import OrderType
from modules.orders.models import Order

logger = structlog.get_logger(__name__)

AwardCallable = Callable[[Order], bool]


def get_loyalty_backend() -> Optional[AwardCallable]:
    path = settings.ORDER_LOYALTY_BACKEND
    if not path:
        return None
    return import_string(path)


def award_loyalty_points(order: Order) -> bool:
    """Award points for an authenticated order; failures are logged only."""
    log = logger.bind(order_id=str(order.id), user_id=order.user_id)
    if order.order_type != OrderType.AUTHENTICATED or order.user_id is None:
        return False

    try:
        backend = get_loyalty_backend()
        if backend is None:
            log.debug("loyalty.disabled")
            return False
        awarded = bool(backend(order))
    except Exception:
        log.exception("loyalty.award_failed")
        return False

    log.info("loyalty.awarded" if awarded else "loyalty.not_awarded")
    return awarded
