"""
Pytest fixtures for provider adapter tests.

Sections:
    - Test Data Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe API Fixtures
    - Error Response Fixtures
"""

import uuid
from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payments.adapters import IntentContext

# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def intent_context():
    """Context for a card payment by a named mentee."""
    return IntentContext(
        payment_id=uuid.uuid4(),
        session_id=uuid.uuid4(),
        customer_email="mona@example.com",
        customer_name="Mona Adel",
    )


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute access over a dict."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Factory for mock PaymentIntent responses."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 1000,
        currency: str = "usd",
        client_secret: str = "pi_test123456_secret_abc123",
        latest_charge: str | None = None,
        last_payment_error: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "latest_charge": latest_charge,
                "last_payment_error": (
                    MockStripeObject(last_payment_error) if last_payment_error else None
                ),
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    """Factory for mock Refund responses."""

    def _create(
        id: str = "re_test123456",
        status: str = "succeeded",
        amount: int = 1000,
    ) -> MockStripeObject:
        return MockStripeObject(
            {"id": id, "object": "refund", "status": status, "amount": amount}
        )

    return _create


# =============================================================================
# Mock Stripe API Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_payment_intent():
    """Patch stripe.PaymentIntent."""
    with patch("stripe.PaymentIntent") as mock:
        yield mock


@pytest.fixture
def mock_stripe_refund():
    """Patch stripe.Refund."""
    with patch("stripe.Refund") as mock:
        yield mock


# =============================================================================
# Error Response Fixtures
# =============================================================================


@pytest.fixture
def stripe_card_error():
    return stripe.CardError(
        message="Your card was declined.",
        param="payment_method",
        code="card_declined",
    )


@pytest.fixture
def stripe_invalid_request_error():
    return stripe.InvalidRequestError(
        message="No such payment_intent: 'pi_missing'",
        param="intent",
        code="resource_missing",
    )


@pytest.fixture
def stripe_rate_limit_error():
    return stripe.RateLimitError(message="Too many requests")


@pytest.fixture
def stripe_connection_error():
    return stripe.APIConnectionError(message="Network error")


@pytest.fixture
def stripe_authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided")
