"""
Pytest fixtures for payment tests.

Fixtures build on each other so a test can ask for the state it needs:

    mentor, mentee -> session -> pending_payment -> paid_payment
                                                 -> completed_session

Provider calls never leave the process: `fake_adapter` stands in for
Stripe/Paymob, `orchestrator` is a PaymentOrchestrator wired to it, and
`patched_provider` points the module-level services (used by views,
tasks and the webhook reconciler) at the same fake.

Usage:
    def test_refund(orchestrator, paid_payment):
        result = orchestrator.refund(paid_payment.id, Decimal("100.00"))
        assert result.success
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from mentorship.models import Session
from mentorship.services import session_service
from mentorship.tests.factories import MentorProfileFactory, SessionFactory
from payments.adapters import IntentResult, ProviderAdapter, RefundResult, StatusResult
from payments.models import Payment
from payments.services import (
    DisputeResolver,
    PaymentOrchestrator,
    mentor_ledger,
    payment_orchestrator,
)
from payments.state_machines import PaymentProvider, PaymentStatus
from payments.tests.factories import PROVIDER_PAYMENT_ID, TRANSACTION_ID, PaymentFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def mentee(db):
    """User booking and paying for sessions."""
    return UserFactory(full_name="Mona Adel")


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return UserFactory(is_staff=True)


@pytest.fixture
def mentor(db):
    """Approved mentor with an open (zero) balance."""
    profile = MentorProfileFactory()
    mentor_ledger.open_balance(profile)
    return profile


# =============================================================================
# Session & Payment Fixtures
# =============================================================================


@pytest.fixture
def session(mentor, mentee):
    """PENDING session priced 500.00 EGP."""
    return SessionFactory(mentor=mentor, mentee=mentee, price=Decimal("500.00"))


@pytest.fixture
def pending_payment(session):
    """Stripe payment whose intent was created and awaits confirmation."""
    return PaymentFactory(
        session=session,
        status=PaymentStatus.PENDING_CONFIRMATION,
        provider_payment_id=PROVIDER_PAYMENT_ID,
        client_secret=f"{PROVIDER_PAYMENT_ID}_secret_abc",
    )


@pytest.fixture
def paid_payment(orchestrator, pending_payment):
    """
    Payment that succeeded through the orchestrator.

    The session is CONFIRMED and the mentor credited 425.00.
    """
    orchestrator.apply_status(
        PROVIDER_PAYMENT_ID, PaymentStatus.SUCCEEDED, transaction_id=TRANSACTION_ID
    )
    return Payment.objects.get(id=pending_payment.id)


@pytest.fixture
def completed_session(paid_payment):
    """Paid session marked COMPLETED (disputable)."""
    result = session_service.complete_session(paid_payment.session_id)
    assert result.success
    return Session.objects.get(id=paid_payment.session_id)


# =============================================================================
# Provider Fixtures
# =============================================================================


@pytest.fixture
def fake_adapter(mocker):
    """
    Provider adapter double.

    Defaults: intents succeed with pi_test_123, the provider reports the
    payment SUCCEEDED and refunds are accepted.
    """
    adapter = mocker.MagicMock(spec=ProviderAdapter)
    adapter.provider = PaymentProvider.STRIPE
    adapter.charge_currency = "USD"
    adapter.minimum_amount = Decimal("0.50")
    adapter.create_intent.return_value = IntentResult(
        provider_payment_id=PROVIDER_PAYMENT_ID,
        client_secret=f"{PROVIDER_PAYMENT_ID}_secret_abc",
    )
    adapter.get_status.return_value = StatusResult(
        status=PaymentStatus.SUCCEEDED,
        transaction_id=TRANSACTION_ID,
    )
    adapter.refund.return_value = RefundResult(
        success=True,
        refund_transaction_id="re_test_123",
        refunded_amount=Decimal("10.00"),
    )
    return adapter


@pytest.fixture
def orchestrator(fake_adapter):
    """PaymentOrchestrator using the fake adapter for every provider."""
    return PaymentOrchestrator(adapter_factory=lambda provider: fake_adapter)


@pytest.fixture
def resolver(orchestrator):
    return DisputeResolver(orchestrator=orchestrator)


@pytest.fixture
def patched_provider(mocker, fake_adapter):
    """Point the module-level orchestrator at the fake adapter."""
    mocker.patch.object(payment_orchestrator, "adapter_factory", return_value=fake_adapter)
    return fake_adapter


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, mentee):
            client = authenticated_client_factory(mentee)
    """

    def _make(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make
