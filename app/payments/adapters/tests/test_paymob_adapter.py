"""
Tests for Paymob adapter.

The Accept REST API is mocked at requests.post; callbacks are signed with
the same HMAC routine Paymob uses.
"""

import json
import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from payments.adapters import IntentContext, PaymobAdapter
from payments.adapters.paymob_adapter import build_hmac_message, compute_hmac
from payments.exceptions import (
    InvalidSignatureError,
    PaymentValidationError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from payments.state_machines import PaymentStatus, PaymobPaymentMethod
from payments.tests.webhook_payloads import PAYMOB_HMAC_SECRET, paymob_transaction


def json_response(body, status_code=200):
    response = MagicMock(status_code=status_code, text=json.dumps(body))
    response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(response=response)
    return response


@pytest.fixture
def adapter():
    return PaymobAdapter()


@pytest.fixture
def mock_post(mocker):
    return mocker.patch("requests.post")


@pytest.fixture
def card_context():
    return IntentContext(
        payment_id=uuid.uuid4(),
        session_id=uuid.uuid4(),
        payment_method=PaymobPaymentMethod.CARD,
        customer_email="mona@example.com",
        customer_name="Mona Adel",
    )


def signed_callback(transaction):
    payload = json.dumps({"type": "TRANSACTION", "obj": transaction}).encode("utf-8")
    return payload, compute_hmac(transaction, PAYMOB_HMAC_SECRET)


# =============================================================================
# Intent Creation
# =============================================================================


class TestCreateIntent:
    def test_three_step_flow(self, adapter, mock_post, card_context):
        """Auth token, order and payment key are requested in order."""
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response({"id": 217503754}),
            json_response({"token": "pay_key"}),
        ]

        result = adapter.create_intent(Decimal("500.00"), "EGP", card_context)

        assert result.provider_payment_id == "217503754"
        assert result.client_secret == "pay_key"
        assert result.redirect_url.endswith("acceptance/iframes/555?payment_token=pay_key")

        urls = [c.args[0] for c in mock_post.call_args_list]
        assert urls[0].endswith("auth/tokens")
        assert urls[1].endswith("ecommerce/orders")
        assert urls[2].endswith("acceptance/payment_keys")

        order = mock_post.call_args_list[1].kwargs["json"]
        assert order["amount_cents"] == 50000
        assert order["currency"] == "EGP"
        assert order["merchant_order_id"].startswith(str(card_context.session_id))

        key_request = mock_post.call_args_list[2].kwargs["json"]
        assert key_request["integration_id"] == 1001
        assert key_request["order_id"] == 217503754
        assert key_request["expiration"] == 3600
        assert key_request["billing_data"]["first_name"] == "Mona"
        assert key_request["billing_data"]["last_name"] == "Adel"
        assert key_request["billing_data"]["email"] == "mona@example.com"
        assert key_request["billing_data"]["city"] == "NA"

    def test_wallet_uses_wallet_integration(self, adapter, mock_post, card_context):
        card_context.payment_method = PaymobPaymentMethod.EWALLET
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response({"id": 1}),
            json_response({"token": "pay_key"}),
        ]

        adapter.create_intent(Decimal("500.00"), "EGP", card_context)

        assert mock_post.call_args_list[2].kwargs["json"]["integration_id"] == 1002

    def test_payment_method_required(self, adapter, mock_post, card_context):
        card_context.payment_method = None

        with pytest.raises(PaymentValidationError):
            adapter.create_intent(Decimal("500.00"), "EGP", card_context)

        mock_post.assert_not_called()

    def test_missing_order_id(self, adapter, mock_post, card_context):
        mock_post.side_effect = [json_response({"token": "auth_tok"}), json_response({})]

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.create_intent(Decimal("500.00"), "EGP", card_context)

        assert exc_info.value.provider_code == "order_failed"

    def test_auth_failure(self, adapter, mock_post, card_context):
        mock_post.return_value = json_response({"detail": "bad key"}, status_code=403)

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.create_intent(Decimal("500.00"), "EGP", card_context)

        assert exc_info.value.provider_code == "403"


# =============================================================================
# Error Translation
# =============================================================================


class TestErrorTranslation:
    @pytest.mark.parametrize("status_code", [429, 500, 502])
    def test_unavailable_statuses(self, adapter, mock_post, status_code):
        mock_post.return_value = json_response({}, status_code=status_code)

        with pytest.raises(ProviderUnavailableError):
            adapter.get_status("217503754")

    def test_client_error_is_rejection(self, adapter, mock_post):
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response({"message": "order not found"}, status_code=404),
        ]

        with pytest.raises(ProviderRejectedError) as exc_info:
            adapter.get_status("217503754")

        assert exc_info.value.provider_code == "404"

    def test_timeout(self, adapter, mock_post):
        mock_post.side_effect = requests.Timeout("read timed out")

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.get_status("217503754")

        assert exc_info.value.provider_code == "connection_error"

    def test_invalid_json(self, adapter, mock_post):
        response = json_response({})
        response.json.side_effect = ValueError("Expecting value")
        mock_post.return_value = response

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.get_status("217503754")

        assert exc_info.value.provider_code == "invalid_response"


# =============================================================================
# Refund and Status
# =============================================================================


class TestRefund:
    def test_refund(self, adapter, mock_post):
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response({"id": 192036999, "success": True, "amount_cents": 20000}),
        ]

        result = adapter.refund("217503754", Decimal("200.00"), prior_transaction_id="192036465")

        assert result.success
        assert result.refund_transaction_id == "192036999"
        assert result.refunded_amount == Decimal("200.00")
        body = mock_post.call_args_list[1].kwargs["json"]
        assert body["transaction_id"] == "192036465"
        assert body["amount_cents"] == 20000

    def test_transaction_id_required(self, adapter, mock_post):
        with pytest.raises(PaymentValidationError):
            adapter.refund("217503754", Decimal("200.00"))

        mock_post.assert_not_called()

    def test_unsuccessful_refund(self, adapter, mock_post):
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response({"id": 192036999, "success": False}),
        ]

        with pytest.raises(ProviderRejectedError):
            adapter.refund("217503754", Decimal("200.00"), prior_transaction_id="192036465")


class TestGetStatus:
    @pytest.mark.parametrize(
        "transaction,expected",
        [
            ({"id": 1, "success": True, "pending": False}, PaymentStatus.SUCCEEDED),
            ({"id": 1, "success": False, "pending": True}, PaymentStatus.PENDING_CONFIRMATION),
            ({"id": 1, "success": False, "pending": False}, PaymentStatus.FAILED),
        ],
    )
    def test_status_mapping(self, adapter, mock_post, transaction, expected):
        mock_post.side_effect = [json_response({"token": "auth_tok"}), json_response(transaction)]

        assert adapter.get_status("217503754").status == expected

    def test_failure_reason(self, adapter, mock_post):
        mock_post.side_effect = [
            json_response({"token": "auth_tok"}),
            json_response(
                {"id": 7, "success": False, "pending": False, "data": {"message": "Declined"}}
            ),
        ]

        result = adapter.get_status("217503754")

        assert result.transaction_id == "7"
        assert result.failure_reason == "Declined"


# =============================================================================
# Callbacks
# =============================================================================


class TestParseCallback:
    def test_successful_transaction(self, adapter):
        payload, signature = signed_callback(paymob_transaction())

        result = adapter.parse_callback(payload, None, {"hmac": signature})

        assert result.success
        assert result.status == PaymentStatus.SUCCEEDED
        assert result.provider_payment_id == "217503754"
        assert result.transaction_id == "192036465"
        assert result.amount == Decimal("500.00")
        assert result.currency == "EGP"
        assert result.event_id == "192036465:succeeded"

    def test_failed_transaction(self, adapter):
        payload, signature = signed_callback(
            paymob_transaction(success=False, data={"message": "Insufficient funds"})
        )

        result = adapter.parse_callback(payload, signature)

        assert result.status == PaymentStatus.FAILED
        assert result.failure_reason == "Insufficient funds"

    def test_refund_transaction_has_no_status(self, adapter):
        payload, signature = signed_callback(
            paymob_transaction(id=192036999, has_parent_transaction=True, is_refunded=True)
        )

        result = adapter.parse_callback(payload, signature)

        assert result.status is None
        assert result.event_type == "transaction.refund"
        assert result.event_id == "192036999:refund"

    def test_uppercase_hmac_accepted(self, adapter):
        payload, signature = signed_callback(paymob_transaction())

        assert adapter.parse_callback(payload, signature.upper()).success

    def test_wrong_hmac(self, adapter):
        payload, _ = signed_callback(paymob_transaction())

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, compute_hmac(paymob_transaction(), "other"))

    def test_tampered_amount(self, adapter):
        _, signature = signed_callback(paymob_transaction())
        payload, _ = signed_callback(paymob_transaction(amount_cents=1))

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, signature)

    def test_missing_hmac(self, adapter):
        payload, _ = signed_callback(paymob_transaction())

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, None, {})

    def test_unconfigured_secret(self, adapter, settings):
        payload, signature = signed_callback(paymob_transaction())
        settings.PAYMOB_HMAC_SECRET = ""

        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, signature)

    @pytest.mark.parametrize("payload", [b"not json", b'{"type": "TRANSACTION"}'])
    def test_unverifiable_payload(self, adapter, payload):
        with pytest.raises(InvalidSignatureError):
            adapter.parse_callback(payload, "deadbeef")


class TestHmacMessage:
    def test_field_order_and_encoding(self):
        """Booleans are lowercased and nested fields flattened in order."""
        message = build_hmac_message(paymob_transaction())

        assert message.startswith("500002026-10-19T12:00:00.000000EGPfalsefalse192036465")
        assert message.endswith("2346MasterCardcardtrue")

    def test_missing_fields_are_null(self):
        assert build_hmac_message({}) == "null" * 20
