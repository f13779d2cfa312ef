"""
Tests for state machine transitions using django-fsm.

Tests valid and invalid transitions for Payment, Payout and
SessionDispute. Terminal states have no outgoing transitions.
"""

from decimal import Decimal

import pytest
from django_fsm import TransitionNotAllowed

from payments.state_machines import (
    DisputeResolution,
    DisputeStatus,
    PaymentStatus,
    PayoutStatus,
)
from payments.tests.factories import PaymentFactory, PayoutFactory, SessionDisputeFactory


# =============================================================================
# Payment State Transition Tests
# =============================================================================


@pytest.mark.django_db
class TestPaymentTransitions:
    """Tests for Payment state machine transitions."""

    # -------------------------------------------------------------------------
    # Valid Transitions
    # -------------------------------------------------------------------------

    def test_created_to_pending(self):
        payment = PaymentFactory()

        payment.mark_pending("pi_1", client_secret="pi_1_secret", checkout_url=None)
        payment.save()

        assert payment.status == PaymentStatus.PENDING_CONFIRMATION
        assert payment.provider_payment_id == "pi_1"
        assert payment.client_secret == "pi_1_secret"
        assert payment.checkout_url == ""

    def test_pending_to_succeeded(self):
        payment = PaymentFactory(
            status=PaymentStatus.PENDING_CONFIRMATION, provider_payment_id="pi_2"
        )

        payment.mark_succeeded("ch_2")
        payment.save()

        assert payment.status == PaymentStatus.SUCCEEDED
        assert payment.transaction_id == "ch_2"
        assert payment.paid_at is not None

    def test_pending_to_failed(self):
        payment = PaymentFactory(status=PaymentStatus.PENDING_CONFIRMATION)

        payment.mark_failed("Your card was declined.")
        payment.save()

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Your card was declined."
        assert payment.failed_at is not None

    def test_partial_then_full_refund(self):
        payment = PaymentFactory(status=PaymentStatus.SUCCEEDED)

        payment.refund_partial(Decimal("100.00"))
        payment.save()
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert payment.refund_amount == Decimal("100.00")

        payment.refund_full(Decimal("400.00"))
        payment.save()
        assert payment.status == PaymentStatus.FULLY_REFUNDED
        assert payment.refund_amount == Decimal("500.00")
        assert payment.refunded_at is not None

    # -------------------------------------------------------------------------
    # Invalid Transitions
    # -------------------------------------------------------------------------

    def test_cannot_refund_unpaid_payment(self):
        payment = PaymentFactory(status=PaymentStatus.PENDING_CONFIRMATION)

        with pytest.raises(TransitionNotAllowed):
            payment.refund_partial(Decimal("10.00"))

    def test_cannot_fail_succeeded_payment(self):
        payment = PaymentFactory(status=PaymentStatus.SUCCEEDED)

        with pytest.raises(TransitionNotAllowed):
            payment.mark_failed("late failure")

    def test_failed_is_terminal(self):
        payment = PaymentFactory(status=PaymentStatus.FAILED)

        with pytest.raises(TransitionNotAllowed):
            payment.mark_succeeded("ch_late")

    def test_fully_refunded_is_terminal(self):
        payment = PaymentFactory(
            status=PaymentStatus.FULLY_REFUNDED, refund_amount=Decimal("500.00")
        )

        with pytest.raises(TransitionNotAllowed):
            payment.refund_partial(Decimal("1.00"))

    def test_status_cannot_be_assigned_directly(self):
        payment = PaymentFactory()

        with pytest.raises(AttributeError):
            payment.status = PaymentStatus.SUCCEEDED


# =============================================================================
# Payout State Transition Tests
# =============================================================================


@pytest.mark.django_db
class TestPayoutTransitions:
    """Tests for Payout state machine transitions."""

    def test_pending_to_processing_to_completed(self, admin_user):
        payout = PayoutFactory()

        payout.process(admin=admin_user)
        payout.save()
        assert payout.status == PayoutStatus.PROCESSING
        assert payout.processed_by == admin_user
        assert payout.processed_at is not None

        payout.complete()
        payout.save()
        assert payout.status == PayoutStatus.COMPLETED
        assert payout.completed_at is not None
        assert not payout.restores_balance

    def test_processing_to_failed(self):
        payout = PayoutFactory()
        payout.process()
        payout.fail("Bank rejected transfer")
        payout.save()

        assert payout.status == PayoutStatus.FAILED
        assert payout.failure_reason == "Bank rejected transfer"
        assert payout.restores_balance

    def test_pending_to_cancelled(self, admin_user):
        payout = PayoutFactory()

        payout.cancel(admin=admin_user, reason="Requested by mentor")
        payout.save()

        assert payout.status == PayoutStatus.CANCELLED
        assert payout.cancelled_at is not None
        assert payout.restores_balance

    def test_cannot_complete_pending_payout(self):
        payout = PayoutFactory()

        with pytest.raises(TransitionNotAllowed):
            payout.complete()

    def test_cannot_cancel_processing_payout(self):
        payout = PayoutFactory()
        payout.process()

        with pytest.raises(TransitionNotAllowed):
            payout.cancel()

    @pytest.mark.parametrize(
        "status", [PayoutStatus.COMPLETED, PayoutStatus.FAILED, PayoutStatus.CANCELLED]
    )
    def test_terminal_states_have_no_transitions(self, status):
        payout = PayoutFactory(status=status)

        for transition in (payout.process, payout.complete, payout.cancel):
            with pytest.raises(TransitionNotAllowed):
                transition()
        with pytest.raises(TransitionNotAllowed):
            payout.fail("again")


# =============================================================================
# SessionDispute State Transition Tests
# =============================================================================


@pytest.mark.django_db
class TestSessionDisputeTransitions:
    def test_pending_to_resolved(self, admin_user):
        dispute = SessionDisputeFactory()

        dispute.resolve(
            DisputeResolution.PARTIAL_REFUND,
            refund_amount=Decimal("200.00"),
            admin_notes="Mentor joined 30 minutes late",
            admin=admin_user,
        )
        dispute.save()

        assert dispute.status == DisputeStatus.RESOLVED
        assert dispute.resolution == DisputeResolution.PARTIAL_REFUND
        assert dispute.refund_amount == Decimal("200.00")
        assert dispute.resolved_by == admin_user
        assert dispute.resolved_at is not None

    def test_resolved_is_irreversible(self):
        dispute = SessionDisputeFactory()
        dispute.resolve(DisputeResolution.NO_REFUND)
        dispute.save()

        with pytest.raises(TransitionNotAllowed):
            dispute.resolve(DisputeResolution.FULL_REFUND)
