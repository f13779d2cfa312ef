"""
Tests for payment model constraints and properties.

The database constraints back up the service-level checks: a bug in a
service must not be able to persist a split that does not add up, a
refund larger than the payment or a negative balance.
"""

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from payments.models import MentorBalance, Payment
from payments.state_machines import PaymentStatus
from payments.tests.factories import (
    MentorBalanceFactory,
    PaymentFactory,
    SessionDisputeFactory,
    WebhookEventFactory,
)


# =============================================================================
# Payment
# =============================================================================


@pytest.mark.django_db
class TestPaymentConstraints:
    def test_split_must_add_up_to_amount(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(mentor_payout_amount=Decimal("400.00"))

    def test_refund_cannot_exceed_amount(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(refund_amount=Decimal("500.01"))

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(
                amount=Decimal("0.00"),
                platform_commission=Decimal("0.00"),
                mentor_payout_amount=Decimal("0.00"),
            )

    def test_one_active_payment_per_session(self, session):
        PaymentFactory(session=session)

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(session=session)

    def test_failed_payment_does_not_block_a_new_one(self, session):
        PaymentFactory(session=session, status=PaymentStatus.FAILED)
        PaymentFactory(session=session)

        assert Payment.objects.filter(session=session).count() == 2

    def test_provider_payment_id_is_unique(self):
        PaymentFactory(provider_payment_id="pi_dup")

        with pytest.raises(IntegrityError), transaction.atomic():
            PaymentFactory(provider_payment_id="pi_dup")

    def test_clean_rejects_inconsistent_split(self):
        payment = PaymentFactory.build(mentor_payout_amount=Decimal("1.00"))

        with pytest.raises(ValidationError):
            payment.clean()


@pytest.mark.django_db
class TestPaymentProperties:
    def test_refundable_amount(self):
        payment = PaymentFactory(
            status=PaymentStatus.PARTIALLY_REFUNDED, refund_amount=Decimal("120.00")
        )

        assert payment.refundable_amount == Decimal("380.00")

    @pytest.mark.parametrize(
        "status,expected",
        [
            (PaymentStatus.CREATED, False),
            (PaymentStatus.PENDING_CONFIRMATION, False),
            (PaymentStatus.FAILED, False),
            (PaymentStatus.SUCCEEDED, True),
            (PaymentStatus.PARTIALLY_REFUNDED, True),
            (PaymentStatus.FULLY_REFUNDED, True),
        ],
    )
    def test_is_paid(self, status, expected):
        assert PaymentFactory(status=status).is_paid is expected

    def test_reflects_earlier_and_equal_statuses(self):
        payment = PaymentFactory(status=PaymentStatus.SUCCEEDED)

        assert payment.reflects(PaymentStatus.PENDING_CONFIRMATION)
        assert payment.reflects(PaymentStatus.SUCCEEDED)
        assert not payment.reflects(PaymentStatus.FULLY_REFUNDED)

    def test_failed_and_succeeded_block_each_other(self):
        failed = PaymentFactory(status=PaymentStatus.FAILED)
        succeeded = PaymentFactory(status=PaymentStatus.SUCCEEDED)

        assert failed.reflects(PaymentStatus.SUCCEEDED)
        assert succeeded.reflects(PaymentStatus.FAILED)

    def test_version_increments_on_save(self):
        payment = PaymentFactory()
        assert payment.version == 1

        payment.mark_pending("pi_versioned")
        payment.save()

        assert payment.version == 2
        assert Payment.objects.get(id=payment.id).version == 2


# =============================================================================
# MentorBalance
# =============================================================================


@pytest.mark.django_db
class TestMentorBalanceConstraints:
    def test_available_balance_cannot_go_negative(self):
        balance = MentorBalanceFactory()
        balance.available_balance = Decimal("-1.00")

        with pytest.raises(IntegrityError), transaction.atomic():
            balance.save()

    def test_pending_balance_cannot_go_negative(self):
        balance = MentorBalanceFactory()
        balance.pending_balance = Decimal("-0.01")

        with pytest.raises(IntegrityError), transaction.atomic():
            balance.save()

    def test_one_balance_per_mentor(self):
        balance = MentorBalanceFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            MentorBalance.objects.create(mentor=balance.mentor)

    def test_last_updated_tracks_updated_at(self):
        balance = MentorBalanceFactory()

        assert balance.last_updated == balance.updated_at


# =============================================================================
# SessionDispute & WebhookEvent
# =============================================================================


@pytest.mark.django_db
class TestSessionDisputeConstraints:
    def test_one_pending_dispute_per_session(self, session):
        SessionDisputeFactory(session=session)

        with pytest.raises(IntegrityError), transaction.atomic():
            SessionDisputeFactory(session=session)


@pytest.mark.django_db
class TestWebhookEventConstraints:
    def test_event_id_unique_per_provider(self):
        event = WebhookEventFactory(event_id="evt_dup")

        with pytest.raises(IntegrityError), transaction.atomic():
            WebhookEventFactory(event_id="evt_dup", provider=event.provider)

    def test_same_event_id_allowed_for_other_provider(self):
        WebhookEventFactory(event_id="1001:succeeded", provider="stripe")
        WebhookEventFactory(event_id="1001:succeeded", provider="paymob")

    def test_non_applied_outcome_ends_ignored(self):
        event = WebhookEventFactory()
        event.mark_processing()
        event.mark_processed("duplicate")

        assert event.status == "ignored"
        assert event.is_finished
        assert event.retry_count == 1
