"""Human-readable order numbers: ``PREFIX-YYYY-NNNN``.

The sequence restarts at ``0001`` every calendar year and is zero-padded
to four digits.  Past ``9999`` it simply grows to five or more digits;
ordering by length first keeps ``FB-2025-10000`` above ``FB-2025-9999``.
Numbers whose tail is not purely numeric are ignored.

The generator reads the current maximum without locking, so two
concurrent callers can receive the same number.  The unique constraint
on ``Order.order_number`` rejects the loser and ``OrderService`` retries.
"""

from __future__ import annotations

import re
from typing import Optional

import structlog
from django.conf import settings
from django.db.models.functions import Length
from django.utils import timezone

from modules.orders.constants import ORDER_NUMBER_SEQUENCE_DIGITS
from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class OrderNumberGenerator:
    def __init__(self, prefix: Optional[str] = None) -> None:
        self.prefix = prefix or settings.ORDER_NUMBER_PREFIX

    def year_prefix(self, year: int) -> str:
        return f"{self.prefix}-{year}-"

    def next(self) -> str:
        """Return the next free-looking number for the current year."""
        year_prefix = self.year_prefix(timezone.now().year)
        last = (
            Order.objects.filter(
                order_number__regex=rf"^{re.escape(year_prefix)}[0-9]+$"
            )
            .order_by(Length("order_number").desc(), "-order_number")
            .values_list("order_number", flat=True)
            .first()
        )
        sequence = int(last[len(year_prefix):]) + 1 if last else 1
        number = f"{year_prefix}{sequence:0{ORDER_NUMBER_SEQUENCE_DIGITS}d}"
        logger.debug("order.number_generated", order_number=number)
        return number
