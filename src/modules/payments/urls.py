"""Payment provider routes, mounted under ``/api/v1/payments/``."""

from django.urls import path

from modules.payments.views import StripeWebhookView

urlpatterns = [
    path("webhook/", StripeWebhookView.as_view(), name="stripe-webhook"),
]
