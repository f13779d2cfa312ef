"""
Tests for webhook views.

Requests are signed the way each provider signs them and run through the
real adapters and the module-level reconciler.

Tests cover:
- Stripe-Signature and Paymob hmac verification
- Payment updates from verified events
- Idempotent redelivery
- Method and CSRF handling
"""

import json
from decimal import Decimal

import pytest
from django.test import Client
from django.urls import reverse

from payments.adapters.paymob_adapter import compute_hmac
from payments.models import MentorBalance, Payment, WebhookEvent
from payments.state_machines import (
    PaymentProvider,
    PaymentStatus,
    PaymobPaymentMethod,
    WebhookEventStatus,
)
from payments.tests.factories import PROVIDER_PAYMENT_ID, PaymentFactory
from payments.tests.webhook_payloads import (
    PAYMOB_HMAC_SECRET,
    paymob_transaction,
    stripe_event,
    stripe_signature,
)


@pytest.fixture
def csrf_client():
    """Client that enforces CSRF like a real browser-less provider call."""
    return Client(enforce_csrf_checks=True)


def post_stripe(client, payload, signature):
    return client.post(
        reverse("payments:stripe_webhook"),
        data=payload,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


def post_paymob(client, transaction, hmac_value):
    return client.post(
        f"{reverse('payments:paymob_webhook')}?hmac={hmac_value}",
        data=json.dumps({"type": "TRANSACTION", "obj": transaction}),
        content_type="application/json",
    )


# =============================================================================
# Stripe
# =============================================================================


@pytest.mark.django_db
class TestStripeWebhook:
    def test_success_event_marks_payment_paid(
        self, csrf_client, patched_provider, pending_payment, mentor
    ):
        payload = stripe_event(intent_id=PROVIDER_PAYMENT_ID, event_id="evt_view_1")

        response = post_stripe(csrf_client, payload, stripe_signature(payload))

        assert response.status_code == 200
        assert response.content == b"OK"
        payment = Payment.objects.get(id=pending_payment.id)
        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.transaction_id == "ch_test123456"
        assert MentorBalance.objects.get(mentor=mentor).available_balance == Decimal("425.00")
        event = WebhookEvent.objects.get(event_id="evt_view_1")
        assert event.provider == PaymentProvider.STRIPE
        assert event.status == WebhookEventStatus.PROCESSED

    def test_redelivery_is_acknowledged_once(
        self, csrf_client, patched_provider, pending_payment, mentor
    ):
        payload = stripe_event(intent_id=PROVIDER_PAYMENT_ID, event_id="evt_view_1")

        post_stripe(csrf_client, payload, stripe_signature(payload))
        response = post_stripe(csrf_client, payload, stripe_signature(payload))

        assert response.status_code == 200
        assert response.content == b"Already processed"
        assert MentorBalance.objects.get(mentor=mentor).available_balance == Decimal("425.00")

    def test_declined_attempt_then_success_marks_payment_paid(
        self, csrf_client, patched_provider, pending_payment, mentor
    ):
        declined = stripe_event(
            "payment_intent.payment_failed",
            intent_id=PROVIDER_PAYMENT_ID,
            event_id="evt_view_declined",
            latest_charge=None,
            amount_received=0,
            last_payment_error={"message": "Your card was declined."},
        )

        response = post_stripe(csrf_client, declined, stripe_signature(declined))

        assert response.status_code == 200
        payment = Payment.objects.get(id=pending_payment.id)
        assert payment.status == PaymentStatus.PENDING_CONFIRMATION
        assert payment.failure_reason == "Your card was declined."

        succeeded = stripe_event(intent_id=PROVIDER_PAYMENT_ID, event_id="evt_view_retry")
        response = post_stripe(csrf_client, succeeded, stripe_signature(succeeded))

        assert response.status_code == 200
        payment = Payment.objects.get(id=pending_payment.id)
        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.session.paid_at is not None
        assert MentorBalance.objects.get(mentor=mentor).available_balance == Decimal("425.00")
        assert WebhookEvent.objects.get(event_id="evt_view_retry").status == (
            WebhookEventStatus.PROCESSED
        )

    def test_canceled_intent_fails_payment(self, csrf_client, patched_provider, pending_payment):
        payload = stripe_event(
            "payment_intent.canceled",
            intent_id=PROVIDER_PAYMENT_ID,
            latest_charge=None,
            cancellation_reason="abandoned",
        )

        response = post_stripe(csrf_client, payload, stripe_signature(payload))

        assert response.status_code == 200
        payment = Payment.objects.get(id=pending_payment.id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "abandoned"

    def test_invalid_signature(self, csrf_client, pending_payment):
        payload = stripe_event(intent_id=PROVIDER_PAYMENT_ID)

        response = post_stripe(
            csrf_client, payload, stripe_signature(payload, secret="whsec_other")
        )

        assert response.status_code == 400
        assert not WebhookEvent.objects.exists()
        assert Payment.objects.get(id=pending_payment.id).status == (
            PaymentStatus.PENDING_CONFIRMATION
        )

    def test_missing_signature(self, csrf_client, db):
        response = csrf_client.post(
            reverse("payments:stripe_webhook"),
            data=stripe_event(),
            content_type="application/json",
        )

        assert response.status_code == 400

    def test_get_not_allowed(self, csrf_client, db):
        response = csrf_client.get(reverse("payments:stripe_webhook"))

        assert response.status_code == 405


# =============================================================================
# Paymob
# =============================================================================


@pytest.mark.django_db
class TestPaymobWebhook:
    @pytest.fixture
    def paymob_payment(self, session):
        return PaymentFactory(
            session=session,
            provider=PaymentProvider.PAYMOB,
            payment_method=PaymobPaymentMethod.CARD,
            status=PaymentStatus.PENDING_CONFIRMATION,
            provider_payment_id="217503754",
            charged_amount=Decimal("500.00"),
            charged_currency="EGP",
        )

    def test_success_callback(self, csrf_client, patched_provider, paymob_payment, mentor):
        transaction = paymob_transaction()

        response = post_paymob(
            csrf_client, transaction, compute_hmac(transaction, PAYMOB_HMAC_SECRET)
        )

        assert response.status_code == 200
        payment = Payment.objects.get(id=paymob_payment.id)
        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.transaction_id == "192036465"
        assert MentorBalance.objects.get(mentor=mentor).available_balance == Decimal("425.00")
        assert WebhookEvent.objects.get().provider == PaymentProvider.PAYMOB

    def test_failed_callback(self, csrf_client, patched_provider, paymob_payment):
        transaction = paymob_transaction(success=False, data={"message": "Do not honor"})

        response = post_paymob(
            csrf_client, transaction, compute_hmac(transaction, PAYMOB_HMAC_SECRET)
        )

        assert response.status_code == 200
        payment = Payment.objects.get(id=paymob_payment.id)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Do not honor"

    def test_invalid_hmac(self, csrf_client, paymob_payment):
        response = post_paymob(csrf_client, paymob_transaction(), "0" * 128)

        assert response.status_code == 400
        assert Payment.objects.get(id=paymob_payment.id).status == (
            PaymentStatus.PENDING_CONFIRMATION
        )
