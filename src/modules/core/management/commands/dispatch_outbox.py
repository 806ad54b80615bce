from __future__ import annotations

from django.core.management.base import BaseCommand

from modules.core.outbox import DEFAULT_BATCH_SIZE, OutboxDispatcher


class Command(BaseCommand):
    help = "Deliver pending (and optionally failed) outbox events now."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--include-failed",
            action="store_true",
            help="Retry FAILED events that are still below OUTBOX_MAX_RETRIES.",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=DEFAULT_BATCH_SIZE,
            help="Maximum number of events to deliver in this run.",
        )

    def handle(self, *args, **options):
        result = OutboxDispatcher().dispatch(
            include_failed=options["include_failed"],
            limit=options["limit"],
        )
        style = self.style.SUCCESS if not result.failed else self.style.WARNING
        self.stdout.write(
            style(
                "Outbox dispatch completed: "
                f"published={result.published}, "
                f"failed={result.failed}"
            )
        )
