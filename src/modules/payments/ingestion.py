"""Checkout-session ingestion.

Turns verified Stripe webhook events into orders.  The provider retries
any webhook that is not acknowledged, so nothing here raises: every
failure is logged with the session id for manual review and reported as
``IngestionOutcome.FAILED``, and the HTTP layer acknowledges regardless.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from modules.orders.constants import OrderSource, OrderType
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.payments.exceptions import IncompleteCheckoutSession

if TYPE_CHECKING:
    from modules.orders.services import OrderService
    from modules.payments.gateway import StripeGateway

logger = structlog.get_logger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"

CENT = Decimal("0.01")


class IngestionOutcome(str, enum.Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    LOGGED = "logged"
    IGNORED = "ignored"


# ---------------------------------------------------------------------------
# Session -> DTO mapping
# ---------------------------------------------------------------------------


def minor_to_major(amount: Optional[int]) -> Decimal:
    """Provider amounts are integer minor units (pence)."""
    return (Decimal(amount or 0) / 100).quantize(CENT)


def _object_id(value: Any) -> str:
    """Return the id of an expandable field, expanded or not."""
    if isinstance(value, dict):
        return value.get("id") or ""
    return value or ""


def _split_name(name: Optional[str]) -> tuple[str, str]:
    parts = (name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _parse_weight(raw: Optional[str]) -> Optional[Decimal]:
    if not raw:
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        logger.warning("webhook.item_weight_unparseable", weight=raw)
        return None


def _shipping_details(session: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    collected = session.get("collected_information") or {}
    return session.get("shipping_details") or collected.get("shipping_details")


def _build_items(line_items: List[Dict[str, Any]]) -> List[CreateOrderItemDTO]:
    items = []
    for line in line_items:
        price = line.get("price") or {}
        metadata = price.get("metadata") or {}
        product_id = _object_id(price.get("product"))
        items.append(
            CreateOrderItemDTO(
                product_id=product_id,
                product_name=line.get("description") or "",
                variant_name=price.get("nickname") or "",
                sku=metadata.get("sku") or product_id,
                quantity=line.get("quantity") or 1,
                unit_price=minor_to_major(price.get("unit_amount")),
                total_price=minor_to_major(line.get("amount_total")),
                weight=_parse_weight(metadata.get("weight")),
            )
        )
    return items


def build_order_dto(
    session: Dict[str, Any], paid_at: Optional[datetime] = None
) -> CreateOrderDTO:
    """Map an expanded checkout session onto ``CreateOrderDTO``.

    Raises:
        IncompleteCheckoutSession: customer details, shipping details or
            line items are missing.
        pydantic.ValidationError: the mapped values break a DTO invariant.
    """
    session_id = session.get("id")
    customer = session.get("customer_details")
    shipping = _shipping_details(session)
    if not customer or not shipping:
        raise IncompleteCheckoutSession(
            f"Session {session_id} is missing customer or shipping details."
        )

    line_items = (session.get("line_items") or {}).get("data") or []
    if not line_items:
        raise IncompleteCheckoutSession(f"Session {session_id} has no line items.")

    shipping_address = shipping.get("address") or {}
    billing_address = customer.get("address") or {}
    totals = session.get("total_details") or {}
    metadata = session.get("metadata") or {}
    first_name, last_name = _split_name(customer.get("name"))

    user_id = metadata.get("userId")
    is_authenticated = (
        metadata.get("orderType") == OrderType.AUTHENTICATED
        and bool(user_id)
        and str(user_id).isdigit()
    )

    street = " ".join(
        part
        for part in (shipping_address.get("line1"), shipping_address.get("line2"))
        if part
    )
    billing_street = " ".join(
        part
        for part in (billing_address.get("line1"), billing_address.get("line2"))
        if part
    )

    return CreateOrderDTO(
        customer_email=customer.get("email") or "",
        customer_first_name=first_name,
        customer_last_name=last_name,
        customer_phone=customer.get("phone") or "",
        user_id=int(user_id) if is_authenticated else None,
        is_guest=not is_authenticated,
        shipping_street=street,
        shipping_city=shipping_address.get("city") or "",
        shipping_postcode=shipping_address.get("postal_code") or "",
        shipping_country=shipping_address.get("country")
        or settings.ORDER_DEFAULT_COUNTRY,
        billing_street=billing_street,
        billing_city=billing_address.get("city") or "",
        billing_postcode=billing_address.get("postal_code") or "",
        billing_country=billing_address.get("country") or "",
        subtotal=minor_to_major(session.get("amount_subtotal")),
        shipping_cost=minor_to_major(totals.get("amount_shipping")),
        tax=minor_to_major(totals.get("amount_tax")),
        total=minor_to_major(session.get("amount_total")),
        currency=(session.get("currency") or settings.ORDER_DEFAULT_CURRENCY).upper(),
        payment_session_id=session_id,
        payment_intent_id=_object_id(session.get("payment_intent")) or None,
        paid_at=paid_at or timezone.now(),
        source=OrderSource.STRIPE,
        items=_build_items(line_items),
    )


# ---------------------------------------------------------------------------
# Event routing
# ---------------------------------------------------------------------------


class CheckoutSessionIngestor:
    def __init__(self, order_service: OrderService, gateway: StripeGateway) -> None:
        self._orders = order_service
        self._gateway = gateway

    def handle_event(self, event: Dict[str, Any]) -> IngestionOutcome:
        event_type = event.get("type")
        payload = (event.get("data") or {}).get("object") or {}
        log = logger.bind(stripe_event_id=event.get("id"), event_type=event_type)

        if event_type == CHECKOUT_SESSION_COMPLETED:
            log.info("webhook.checkout_completed", payment_session_id=payload.get("id"))
            return self.ingest_checkout_session(payload.get("id"))
        if event_type == PAYMENT_INTENT_SUCCEEDED:
            log.info("webhook.payment_succeeded", payment_intent_id=payload.get("id"))
            return IngestionOutcome.LOGGED
        if event_type == PAYMENT_INTENT_FAILED:
            log.warning("webhook.payment_failed", payment_intent_id=payload.get("id"))
            return IngestionOutcome.LOGGED

        log.info("webhook.unhandled_event")
        return IngestionOutcome.IGNORED

    def ingest_checkout_session(self, session_id: Optional[str]) -> IngestionOutcome:
        log = logger.bind(payment_session_id=session_id)
        if not session_id:
            log.error("webhook.order_creation_failed", reason="missing session id")
            return IngestionOutcome.FAILED

        try:
            existing = self._orders.get_by_payment_session_id(session_id)
            if existing:
                log.info("webhook.order_exists", order_number=existing.order_number)
                return IngestionOutcome.DUPLICATE

            session = self._gateway.retrieve_checkout_session(session_id)
            dto = self._resolve_owner(build_order_dto(session))
            order = self._orders.create_order(dto)
        except Exception:
            log.exception("webhook.order_creation_failed")
            return IngestionOutcome.FAILED

        log.info(
            "webhook.order_created",
            order_id=str(order.id),
            order_number=order.order_number,
        )
        return IngestionOutcome.CREATED

    def _resolve_owner(self, dto: CreateOrderDTO) -> CreateOrderDTO:
        """Downgrade to a guest order when the referenced user is unknown."""
        if dto.is_guest or dto.user_id is None:
            return dto
        if get_user_model().objects.filter(pk=dto.user_id).exists():
            return dto
        logger.warning(
            "webhook.order_user_unknown",
            payment_session_id=dto.payment_session_id,
            user_id=dto.user_id,
        )
        return dto.model_copy(update={"user_id": None, "is_guest": True})
