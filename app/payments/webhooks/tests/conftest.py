"""
Pytest fixtures for webhook tests.

The reconciler is wired to the shared fake adapter; `callback` builds the
CallbackResult its parse_callback returns. Payment and session fixtures
come from payments/conftest.py.
"""

from decimal import Decimal

import pytest

from payments.adapters import CallbackResult
from payments.state_machines import PaymentStatus
from payments.tests.factories import PROVIDER_PAYMENT_ID, TRANSACTION_ID
from payments.webhooks import WebhookReconciler


@pytest.fixture
def callback():
    """Factory for verified provider callbacks."""

    def _create(
        status: str | None = PaymentStatus.SUCCEEDED,
        event_id: str = "evt_test_1",
        provider_payment_id: str = PROVIDER_PAYMENT_ID,
        failure_reason: str | None = None,
    ) -> CallbackResult:
        return CallbackResult(
            success=status == PaymentStatus.SUCCEEDED,
            provider_payment_id=provider_payment_id,
            transaction_id=TRANSACTION_ID,
            status=status,
            amount=Decimal("10.00"),
            currency="USD",
            event_id=event_id,
            event_type=f"payment_intent.{status or 'created'}",
            failure_reason=failure_reason,
            raw_data={"id": event_id},
        )

    return _create


@pytest.fixture
def reconciler(orchestrator, fake_adapter):
    return WebhookReconciler(
        orchestrator=orchestrator,
        adapter_factory=lambda provider: fake_adapter,
    )
