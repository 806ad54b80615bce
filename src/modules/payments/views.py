"""Stripe webhook endpoint.

Only an unverifiable request is rejected.  A verified event is always
acknowledged with ``{"received": true}``: ingestion failures are logged
for manual review instead of triggering provider retries.
"""

from __future__ import annotations

import structlog
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.exceptions import WebhookSignatureInvalid
from modules.payments.gateway import StripeGateway
from modules.payments.ingestion import CheckoutSessionIngestor

logger = structlog.get_logger(__name__)


class StripeWebhookView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []

    def post(self, request: Request) -> Response:
        """POST /api/v1/payments/webhook/"""
        signature = request.headers.get("Stripe-Signature")
        if not signature:
            logger.warning("webhook.signature_missing")
            return Response(
                {"detail": "Missing Stripe-Signature header."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        gateway = StripeGateway()
        try:
            event = gateway.construct_event(request.body, signature)
        except WebhookSignatureInvalid as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        ingestor = CheckoutSessionIngestor(
            order_service=OrderService(order_repository=OrderDjangoRepository()),
            gateway=gateway,
        )
        outcome = ingestor.handle_event(event)
        logger.info(
            "webhook.acknowledged",
            stripe_event_id=event.get("id"),
            outcome=outcome.value,
        )
        return Response({"received": True})
