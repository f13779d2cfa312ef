"""
Webhook endpoint views for Stripe and Paymob.

The views only adapt HTTP to the reconciler: they pass the raw body, the
provider's signature (Stripe-Signature header, Paymob `hmac` query
parameter) and answer with the reconciler's status code.

    200 - event recorded (applied, duplicate or ignored)
    400 - invalid signature or malformed payload
    503 - processing failed, the provider should redeliver

Usage:
    # In urls.py
    from payments.webhooks.views import paymob_webhook, stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
        path("webhooks/paymob/", paymob_webhook, name="paymob_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.state_machines import PaymentProvider
from payments.webhooks.reconciler import webhook_reconciler


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Stripe webhook events.

    The Stripe-Signature header is verified against the raw body with
    STRIPE_WEBHOOK_SECRET before the event is read.

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    result = webhook_reconciler.handle(
        PaymentProvider.STRIPE,
        request.body,
        request.headers.get("Stripe-Signature", ""),
        request.GET.dict(),
    )
    return HttpResponse(result.message, status=result.status_code)


@csrf_exempt
@require_POST
def paymob_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Paymob transaction processed callbacks.

    Paymob sends the HMAC-SHA512 of the transaction fields as the `hmac`
    query parameter.
    """
    result = webhook_reconciler.handle(
        PaymentProvider.PAYMOB,
        request.body,
        request.GET.get("hmac", ""),
        request.GET.dict(),
    )
    return HttpResponse(result.message, status=result.status_code)
