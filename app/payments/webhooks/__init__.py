"""
Webhook handling for payment provider events.

Webhooks from Stripe and Paymob are verified, recorded idempotently and
applied synchronously by the WebhookReconciler.

Usage:
    # In urls.py
    from payments.webhooks.views import paymob_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
        path("webhooks/paymob/", paymob_webhook, name="paymob_webhook"),
    ]
"""

from payments.webhooks.reconciler import (
    ReconcileResult,
    WebhookReconciler,
    webhook_reconciler,
)

__all__ = [
    "ReconcileResult",
    "WebhookReconciler",
    "webhook_reconciler",
]
