"""Customer and staff emails about orders.

Every method returns ``True`` when the message was handed to the email
backend and ``False`` otherwise.  Delivery problems never propagate: an
order is valid whether or not its emails went out.
"""

from __future__ import annotations

from typing import List

import structlog
from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import render_to_string

from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class OrderNotifier:
    def send_order_confirmation(self, order: Order) -> bool:
        return self._send(
            kind="confirmation",
            order=order,
            subject=f"Order Confirmation - {order.order_number}",
            template="orders/email/confirmation.txt",
            recipients=[order.customer_email],
        )

    def send_admin_new_order(self, order: Order) -> bool:
        admin_email = settings.ORDER_ADMIN_EMAIL
        if not admin_email:
            logger.info("email.admin_recipient_missing", order_id=str(order.id))
            return False
        return self._send(
            kind="admin_new_order",
            order=order,
            subject=f"New Order: {order.order_number} - {order.total} {order.currency}",
            template="orders/email/admin_new_order.txt",
            recipients=[admin_email],
        )

    def send_shipping_notification(self, order: Order) -> bool:
        return self._send(
            kind="shipping",
            order=order,
            subject=f"Your Order Has Been Shipped - {order.order_number}",
            template="orders/email/shipped.txt",
            recipients=[order.customer_email],
        )

    def _send(
        self,
        kind: str,
        order: Order,
        subject: str,
        template: str,
        recipients: List[str],
    ) -> bool:
        log = logger.bind(
            email_kind=kind,
            order_id=str(order.id),
            order_number=order.order_number,
        )
        try:
            message = render_to_string(
                template, {"order": order, "items": list(order.items.all())}
            )
            send_mail(
                subject=subject,
                message=message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=recipients,
                fail_silently=False,
            )
        except Exception:
            log.exception("email.send_failed")
            return False

        log.info("email.sent")
        return True
