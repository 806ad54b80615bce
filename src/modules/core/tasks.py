"""Asynchronous tasks for the core module."""

import structlog
from celery import shared_task

from modules.core.outbox import OutboxDispatcher

logger = structlog.get_logger(__name__)


@shared_task(name="core.dispatch_outbox_events")
def dispatch_outbox_events(include_failed: bool = False) -> dict:
    """Deliver pending outbox events to their in-process handlers."""
    result = OutboxDispatcher().dispatch(include_failed=include_failed)
    logger.info("outbox.dispatch_completed", **result.as_dict())
    return result.as_dict()
