"""Transactional outbox dispatch.

Domain events are written to ``OutboxEvent`` by the repositories inside
the business transaction.  ``OutboxDispatcher`` delivers them afterwards
to the in-process event bus, one event per transaction, oldest first.
Handlers therefore never run inside (or gate) the transaction that
produced the event.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from kombu.exceptions import OperationalError

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.bus import IEventBus
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class DispatchResult:
    published: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class OutboxDispatcher:
    """Publishes pending outbox events on the event bus."""

    def __init__(
        self,
        bus: Optional[IEventBus] = None,
        max_retries: Optional[int] = None,
    ) -> None:
        self._bus = bus or event_bus
        self._max_retries = (
            max_retries if max_retries is not None else settings.OUTBOX_MAX_RETRIES
        )

    def dispatch(
        self, include_failed: bool = False, limit: int = DEFAULT_BATCH_SIZE
    ) -> DispatchResult:
        """Deliver up to *limit* events and return how many succeeded/failed.

        FAILED events are only picked up with ``include_failed=True`` and
        while ``retry_count`` is below the configured ceiling.
        """
        result = DispatchResult()
        for event_pk in self._candidate_ids(include_failed, limit):
            with transaction.atomic():
                event = (
                    OutboxEvent.objects.select_for_update(skip_locked=True)
                    .filter(self._eligible(include_failed), pk=event_pk)
                    .first()
                )
                if event is None:
                    continue
                if self._deliver(event):
                    result.published += 1
                else:
                    result.failed += 1
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _eligible(self, include_failed: bool) -> Q:
        condition = Q(status=EventStatus.PENDING)
        if include_failed:
            condition |= Q(
                status=EventStatus.FAILED, retry_count__lt=self._max_retries
            )
        return condition

    def _candidate_ids(self, include_failed: bool, limit: int) -> List:
        return list(
            OutboxEvent.objects.filter(self._eligible(include_failed))
            .order_by("created_at", "id")
            .values_list("pk", flat=True)[:limit]
        )

    def _deliver(self, outbox_event: OutboxEvent) -> bool:
        log = logger.bind(
            outbox_id=str(outbox_event.pk),
            event_type=outbox_event.event_type,
            aggregate_id=outbox_event.aggregate_id,
        )
        event_class = self._bus.resolve(outbox_event.event_type)
        if event_class is None:
            log.info("outbox.event_unrouted")
            outbox_event.mark_as_published()
            return True

        try:
            domain_event = event_class.from_payload(outbox_event.payload)
            # Handler writes roll back to this savepoint on failure.
            with transaction.atomic():
                self._bus.publish(domain_event)
        except Exception as exc:
            log.exception("outbox.delivery_failed")
            outbox_event.mark_as_failed(f"{type(exc).__name__}: {exc}")
            return False

        outbox_event.mark_as_published()
        log.info("outbox.event_published")
        return True


def schedule_outbox_dispatch() -> None:
    """Queue a dispatch run on the Celery broker.

    Intended for ``transaction.on_commit``.  An unreachable broker leaves
    the events PENDING for the next run; the caller is never affected.
    """
    from modules.core.tasks import dispatch_outbox_events

    try:
        dispatch_outbox_events.delay()
    except OperationalError:
        logger.exception("outbox.schedule_failed")
