"""Stripe adapter.

Wraps the two provider calls the order flow needs and hands back plain
dicts, so the ingestion code never depends on SDK object types.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

import stripe
import structlog
from django.conf import settings

from modules.payments.exceptions import PaymentProviderError, WebhookSignatureInvalid

logger = structlog.get_logger(__name__)

CHECKOUT_SESSION_EXPAND = ["line_items", "customer", "payment_intent"]


class StripeGateway:
    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret
            if webhook_secret is not None
            else settings.STRIPE_WEBHOOK_SECRET
        )

    def construct_event(
        self, payload: Union[bytes, str], signature: str
    ) -> Dict[str, Any]:
        """Verify the ``Stripe-Signature`` header and return the event as a dict.

        Raises:
            WebhookSignatureInvalid: bad signature, stale timestamp, malformed
                payload or no webhook secret configured.
        """
        if not self.webhook_secret:
            logger.error("webhook.secret_not_configured")
            raise WebhookSignatureInvalid("Webhook secret is not configured.")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("webhook.signature_invalid", error=str(exc))
            raise WebhookSignatureInvalid("Invalid webhook signature.") from exc
        except ValueError as exc:
            logger.warning("webhook.payload_invalid", error=str(exc))
            raise WebhookSignatureInvalid("Invalid webhook payload.") from exc

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        """Fetch a checkout session with its line items expanded.

        Raises:
            PaymentProviderError: the provider call failed.
        """
        try:
            session = stripe.checkout.Session.retrieve(
                session_id,
                expand=CHECKOUT_SESSION_EXPAND,
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error(
                "stripe.session_retrieve_failed",
                payment_session_id=session_id,
                error=str(exc),
            )
            raise PaymentProviderError(
                f"Could not retrieve checkout session {session_id}."
            ) from exc
        return session.to_dict(recursive=True)
