"""
Tests for Stripe adapter.

Tests cover:
- Idempotency key generation
- Intent creation, refunds and status retrieval against a mocked SDK
- Error translation for each exception type
- Webhook verification and event mapping
"""

import uuid
from decimal import Decimal

import pytest

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.adapters.stripe_adapter import EVENT_STATUS_MAP, INTENT_STATUS_MAP
from payments.exceptions import (
    InvalidAmountError,
    InvalidSignatureError,
    PaymentValidationError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from payments.state_machines import PaymentStatus
from payments.tests.webhook_payloads import stripe_event, stripe_signature


@pytest.fixture
def adapter():
    return StripeAdapter()


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    """Tests for idempotency key generation."""

    def test_key_format(self):
        """Should produce operation:entity:attempt:hash."""
        entity_id = uuid.uuid4()

        key = IdempotencyKeyGenerator.generate("create_intent", entity_id)

        operation, entity, attempt, short_hash = key.split(":")
        assert operation == "create_intent"
        assert entity == str(entity_id)
        assert attempt == "1"
        assert len(short_hash) == 8

    def test_deterministic(self):
        """Same inputs should give the same key."""
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "refund", entity_id, 2
        ) == IdempotencyKeyGenerator.generate("refund", entity_id, 2)

    def test_attempt_changes_key(self):
        """Different attempts should give different keys."""
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "refund", entity_id, 1
        ) != IdempotencyKeyGenerator.generate("refund", entity_id, 2)


# =============================================================================
# Operation Tests
# =============================================================================


class TestCreateIntent:
    """Tests for StripeAdapter.create_intent."""

    def test_creates_payment_intent(
        self, adapter, intent_context, mock_stripe_payment_intent, mock_payment_intent
    ):
        """Should send the amount in cents with an idempotency key."""
        mock_stripe_payment_intent.create.return_value = mock_payment_intent()

        result = adapter.create_intent(Decimal("10.00"), "USD", intent_context)

        assert result.provider_payment_id == "pi_test123456"
        assert result.client_secret == "pi_test123456_secret_abc123"
        assert result.redirect_url is None

        kwargs = mock_stripe_payment_intent.create.call_args.kwargs
        assert kwargs["amount"] == 1000
        assert kwargs["currency"] == "usd"
        assert kwargs["receipt_email"] == "mona@example.com"
        assert kwargs["metadata"] == {
            "session_id": str(intent_context.session_id),
            "payment_id": str(intent_context.payment_id),
        }
        assert kwargs["idempotency_key"] == IdempotencyKeyGenerator.generate(
            "create_intent", intent_context.payment_id
        )

    def test_below_minimum_never_calls_stripe(
        self, adapter, intent_context, mock_stripe_payment_intent
    ):
        """Amounts under 0.50 should be rejected locally."""
        with pytest.raises(InvalidAmountError) as exc_info:
            adapter.create_intent(Decimal("0.49"), "USD", intent_context)

        assert exc_info.value.error_code == "INVALID_AMOUNT"
        mock_stripe_payment_intent.create.assert_not_called()

    def test_charge_currency_follows_settings(self, adapter, settings):
        """Should charge in the configured Stripe currency."""
        settings.STRIPE_CURRENCY = "EUR"

        assert adapter.charge_currency == "EUR"


class TestRefund:
    """Tests for StripeAdapter.refund."""

    def test_partial_refund(self, adapter, mock_stripe_refund, mock_refund):
        """Should refund the given amount against the intent."""
        mock_stripe_refund.create.return_value = mock_refund(amount=250)

        result = adapter.refund("pi_test123456", Decimal("2.50"), idempotency_key="refund:k")

        assert result.success
        assert result.refund_transaction_id == "re_test123456"
        assert result.refunded_amount == Decimal("2.50")
        mock_stripe_refund.create.assert_called_once_with(
            payment_intent="pi_test123456",
            amount=250,
            idempotency_key="refund:k",
        )

    def test_generates_key_when_missing(self, adapter, mock_stripe_refund, mock_refund):
        """Should derive an idempotency key from the intent and amount."""
        mock_stripe_refund.create.return_value = mock_refund()

        adapter.refund("pi_test123456", Decimal("10.00"))

        key = mock_stripe_refund.create.call_args.kwargs["idempotency_key"]
        assert key.startswith("refund:pi_test123456:1000:")

    @pytest.mark.parametrize("status", ["failed", "canceled"])
    def test_unsuccessful_refund_is_rejected(
        self, adapter, mock_stripe_refund, mock_refund, status
    ):
        """A refund Stripe will not perform should raise ProviderRejectedError."""
        mock_stripe_refund.create.return_value = mock_refund(status=status)

        with pytest.raises(ProviderRejectedError) as exc_info:
            adapter.refund("pi_test123456", Decimal("10.00"))

        assert exc_info.value.provider_code == status


class TestGetStatus:
    """Tests for StripeAdapter.get_status."""

    @pytest.mark.parametrize("stripe_status,expected", list(INTENT_STATUS_MAP.items()))
    def test_status_mapping(
        self,
        adapter,
        mock_stripe_payment_intent,
        mock_payment_intent,
        stripe_status,
        expected,
    ):
        """Should map every PaymentIntent status."""
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status=stripe_status
        )

        assert adapter.get_status("pi_test123456").status == expected

    def test_unknown_status_is_pending(
        self, adapter, mock_stripe_payment_intent, mock_payment_intent
    ):
        """Unmapped statuses should be treated as still pending."""
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="brand_new_status"
        )

        assert adapter.get_status("pi_test123456").status == (
            PaymentStatus.PENDING_CONFIRMATION
        )

    def test_succeeded_reports_charge(
        self, adapter, mock_stripe_payment_intent, mock_payment_intent
    ):
        """Should report the latest charge as the transaction id."""
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="succeeded", latest_charge="ch_test123456"
        )

        result = adapter.get_status("pi_test123456")

        assert result.transaction_id == "ch_test123456"
        assert result.failure_reason is None

    def test_failure_reason(self, adapter, mock_stripe_payment_intent, mock_payment_intent):
        """Should surface the last payment error message."""
        mock_stripe_payment_intent.retrieve.return_value = mock_payment_intent(
            status="requires_payment_method",
            last_payment_error={"message": "Your card has insufficient funds."},
        )

        result = adapter.get_status("pi_test123456")

        assert result.status == PaymentStatus.FAILED
        assert result.failure_reason == "Your card has insufficient funds."


# =============================================================================
# Error Translation Tests
# =============================================================================


class TestErrorTranslation:
    """Stripe SDK errors should surface as provider errors."""

    def test_card_declined(
        self, adapter, intent_context, mock_stripe_payment_intent, stripe_card_error
    ):
        """CardError should become a CARD_DECLINED rejection."""
        mock_stripe_payment_intent.create.side_effect = stripe_card_error

        with pytest.raises(ProviderRejectedError) as exc_info:
            adapter.create_intent(Decimal("10.00"), "USD", intent_context)

        assert exc_info.value.error_code == "CARD_DECLINED"
        assert exc_info.value.provider_code == "card_declined"
        assert not exc_info.value.is_retryable

    def test_invalid_request(
        self, adapter, mock_stripe_payment_intent, stripe_invalid_request_error
    ):
        """InvalidRequestError should be a permanent rejection."""
        mock_stripe_payment_intent.retrieve.side_effect = stripe_invalid_request_error

        with pytest.raises(ProviderRejectedError) as exc_info:
            adapter.get_status("pi_missing")

        assert exc_info.value.provider_code == "resource_missing"

    @pytest.mark.parametrize(
        "error_fixture,provider_code",
        [
            ("stripe_rate_limit_error", "rate_limit"),
            ("stripe_connection_error", "api_connection_error"),
            ("stripe_authentication_error", "authentication_error"),
        ],
    )
    def test_transient_errors(
        self, adapter, mock_stripe_refund, request, error_fixture, provider_code
    ):
        """Transport and credential failures should be retryable."""
        mock_stripe_refund.create.side_effect = request.getfixturevalue(error_fixture)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.refund("pi_test123456", Decimal("10.00"))

        assert exc_info.value.provider_code == provider_code
        assert exc_info.value.is_retryable

    def test_unexpected_error(self, adapter, mock_stripe_payment_intent):
        """Unknown exceptions should be treated as an outage."""
        mock_stripe_payment_intent.retrieve.side_effect = RuntimeError("socket closed")

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.get_status("pi_test123456")

        assert exc_info.value.provider_code == "unknown_error"


# =============================================================================
# Webhook Tests
# =============================================================================


class TestParseCallback:
    """Tests for StripeAdapter.parse_callback."""

    def test_succeeded_event(self, adapter):
        """A signed success event should map to SUCCEEDED."""
        payload = stripe_event(event_id="evt_test_1")

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert result.success
        assert result.status == PaymentStatus.SUCCEEDED
        assert result.provider_payment_id == "pi_test123456"
        assert result.transaction_id == "ch_test123456"
        assert result.amount == Decimal("10.00")
        assert result.currency == "USD"
        assert result.event_id == "evt_test_1"
        assert result.event_type == "payment_intent.succeeded"
        assert result.raw_data["id"] == "evt_test_1"

    def test_declined_attempt_keeps_intent_open(self, adapter):
        """A declined attempt should report the decline message but stay pending."""
        payload = stripe_event(
            "payment_intent.payment_failed",
            latest_charge=None,
            amount_received=0,
            last_payment_error={"message": "Your card was declined."},
        )

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert not result.success
        assert result.status == PaymentStatus.PENDING_CONFIRMATION
        assert result.failure_reason == "Your card was declined."
        assert result.transaction_id == "pi_test123456"

    def test_declined_attempt_without_message_still_has_reason(self, adapter):
        payload = stripe_event("payment_intent.payment_failed", latest_charge=None)

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert result.failure_reason == "Payment attempt was declined"

    def test_canceled_intent_is_final_failure(self, adapter):
        payload = stripe_event(
            "payment_intent.canceled",
            latest_charge=None,
            cancellation_reason="abandoned",
        )

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert result.status == PaymentStatus.FAILED
        assert result.failure_reason == "abandoned"

    @pytest.mark.parametrize("event_type,expected", list(EVENT_STATUS_MAP.items()))
    def test_event_mapping(self, adapter, event_type, expected):
        payload = stripe_event(event_type)

        assert adapter.parse_callback(payload, stripe_signature(payload)).status == expected

    def test_unmapped_intent_event_has_no_status(self, adapter):
        """Intent events with no payment outcome carry no status."""
        payload = stripe_event("payment_intent.created")

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert result.status is None
        assert not result.success

    def test_non_intent_event(self, adapter):
        """Events about other objects should be passed on with no status."""
        payload = stripe_event(
            "charge.refunded",
            intent_id="ch_test123456",
            object="charge",
            payment_intent="pi_test123456",
        )

        result = adapter.parse_callback(payload, stripe_signature(payload))

        assert result.status is None
        assert result.provider_payment_id == "pi_test123456"
        assert result.event_type == "charge.refunded"

    def test_wrong_secret(self, adapter):
        """A signature made with another secret should be rejected."""
        payload = stripe_event()

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, stripe_signature(payload, secret="whsec_other"))

    def test_tampered_payload(self, adapter):
        """A payload changed after signing should be rejected."""
        payload = stripe_event()
        signature = stripe_signature(payload)

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload.replace(b"1000", b"9000"), signature)

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature(self, adapter, signature):
        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(stripe_event(), signature)

    def test_malformed_payload(self, adapter):
        """A correctly signed non-JSON body is a validation error."""
        payload = b"not json"

        with pytest.raises(PaymentValidationError):
            adapter.parse_callback(payload, stripe_signature(payload))
