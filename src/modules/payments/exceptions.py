"""Payment provider exceptions.

Raised by the Stripe gateway and the checkout-session ingestor.  Only
``WebhookSignatureInvalid`` reaches the HTTP layer; everything else is
logged by the ingestor and acknowledged.
"""


class WebhookSignatureInvalid(Exception):
    """The webhook payload or its signature could not be verified."""


class PaymentProviderError(Exception):
    """A call to the payment provider failed."""


class IncompleteCheckoutSession(Exception):
    """The checkout session lacks customer, shipping or line-item data."""
