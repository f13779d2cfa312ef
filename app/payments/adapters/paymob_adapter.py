"""
Paymob Accept API adapter for card and mobile wallet payments (EGP).

Paymob has no official Python SDK; the adapter talks to the Accept REST
API with requests.

Intent Flow:
    1. POST auth/tokens                 -> auth token
    2. POST ecommerce/orders            -> order id (provider_payment_id)
    3. POST acceptance/payment_keys     -> payment key (client_secret)
    4. Mentee is redirected to the hosted iframe with the payment key

Callbacks:
    Paymob posts {"type": "TRANSACTION", "obj": {...}} and passes an
    HMAC-SHA512 of 20 transaction fields as the ``hmac`` query parameter.

Configuration (via settings):
- PAYMOB_API_BASE_URL: Accept API base (default: https://accept.paymob.com/api/)
- PAYMOB_API_KEY: API key used to obtain auth tokens
- PAYMOB_HMAC_SECRET: Key for callback HMAC verification
- PAYMOB_INTEGRATION_ID / PAYMOB_WALLET_INTEGRATION_ID: Per-method integrations
- PAYMOB_IFRAME_ID: Hosted checkout iframe
- PAYMOB_TIMEOUT_SECONDS: HTTP timeout (default: 15)
- PAYMENT_EXPIRATION_MINUTES: Payment key lifetime
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

import requests
from django.conf import settings

from payments.adapters.base import (
    CallbackResult,
    IntentResult,
    ProviderAdapter,
    RefundResult,
    StatusResult,
    from_minor_units,
    to_minor_units,
)
from payments.exceptions import (
    InvalidSignatureError,
    PaymentValidationError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from payments.state_machines import PaymentProvider, PaymentStatus, PaymobPaymentMethod

if TYPE_CHECKING:
    from payments.adapters.base import IntentContext


# Transaction fields concatenated (in this order) for the callback HMAC
HMAC_FIELDS: tuple[str, ...] = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)

BILLING_PLACEHOLDER = "NA"


def _hmac_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_hmac_message(transaction: dict[str, Any]) -> str:
    """Concatenate the HMAC fields of a callback transaction object."""
    parts = []
    for field_path in HMAC_FIELDS:
        value: Any = transaction
        for key in field_path.split("."):
            value = value.get(key) if isinstance(value, dict) else None
        parts.append(_hmac_value(value))
    return "".join(parts)


def compute_hmac(transaction: dict[str, Any], secret: str) -> str:
    """HMAC-SHA512 hex digest Paymob sends with a transaction callback."""
    return hmac.new(
        secret.encode("utf-8"),
        build_hmac_message(transaction).encode("utf-8"),
        hashlib.sha512,
    ).hexdigest()


def transaction_status(transaction: dict[str, Any]) -> str:
    """Map a Paymob transaction object to a PaymentStatus."""
    if transaction.get("success"):
        return PaymentStatus.SUCCEEDED
    if transaction.get("pending"):
        return PaymentStatus.PENDING_CONFIRMATION
    return PaymentStatus.FAILED


class PaymobAdapter(ProviderAdapter):
    """
    Adapter for Paymob Accept (cards and mobile wallets, charged in EGP).

    Usage:
        adapter = PaymobAdapter()
        result = adapter.create_intent(Decimal("500.00"), "EGP", context)
        # result.redirect_url -> hosted iframe
    """

    provider = PaymentProvider.PAYMOB
    charge_currency = "EGP"
    minimum_amount = Decimal("1.00")

    # =========================================================================
    # HTTP
    # =========================================================================

    @staticmethod
    def _base_url() -> str:
        return getattr(settings, "PAYMOB_API_BASE_URL", "https://accept.paymob.com/api/")

    def _post(self, path: str, payload: dict[str, Any], log_context: dict[str, Any]) -> dict:
        """POST JSON to the Accept API and return the decoded body."""
        url = urljoin(self._base_url(), path)
        timeout = getattr(settings, "PAYMOB_TIMEOUT_SECONDS", 15)
        start_time = time.time()

        try:
            response = requests.post(url, json=payload, timeout=timeout)
            response.raise_for_status()
            body = response.json()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_paymob_error(e, {**log_context, "path": path}, duration_ms)
            raise

        self.get_logger().debug(
            "Paymob request completed",
            extra={
                **log_context,
                "path": path,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return body

    def _authenticate(self, log_context: dict[str, Any]) -> str:
        body = self._post("auth/tokens", {"api_key": settings.PAYMOB_API_KEY}, log_context)
        token = body.get("token")
        if not token:
            raise ProviderUnavailableError(
                "Invalid authentication response from Paymob",
                provider=self.provider,
                provider_code="auth_failed",
            )
        return token

    @staticmethod
    def _integration_id(method: int | None) -> int:
        if method == PaymobPaymentMethod.EWALLET:
            return settings.PAYMOB_WALLET_INTEGRATION_ID
        return settings.PAYMOB_INTEGRATION_ID

    @staticmethod
    def _billing_data(context: IntentContext) -> dict[str, str]:
        first_name, _, last_name = (context.customer_name or "").partition(" ")
        data = {
            key: BILLING_PLACEHOLDER
            for key in (
                "apartment",
                "floor",
                "street",
                "building",
                "shipping_method",
                "postal_code",
                "city",
                "country",
                "state",
                "phone_number",
            )
        }
        data["email"] = context.customer_email or BILLING_PLACEHOLDER
        data["first_name"] = first_name or BILLING_PLACEHOLDER
        data["last_name"] = last_name or BILLING_PLACEHOLDER
        return data

    # =========================================================================
    # Operations
    # =========================================================================

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        context: IntentContext,
    ) -> IntentResult:
        """Create a Paymob order and payment key for the hosted checkout."""
        self.check_minimum(amount)
        if context.payment_method is None:
            raise PaymentValidationError(
                "Paymob payments require a payment method",
                details={"provider": self.provider},
            )

        logger = self.get_logger()
        amount_cents = to_minor_units(amount)
        log_context = {
            "operation": "create_intent",
            "payment_id": str(context.payment_id),
            "amount_cents": amount_cents,
            "currency": currency,
            "payment_method": context.payment_method,
        }
        logger.info("Starting Paymob operation", extra=log_context)

        token = self._authenticate(log_context)

        order = self._post(
            "ecommerce/orders",
            {
                "auth_token": token,
                "delivery_needed": False,
                "amount_cents": amount_cents,
                "currency": currency,
                "merchant_order_id": f"{context.session_id}_{uuid.uuid4()}",
                "items": [],
            },
            log_context,
        )
        order_id = order.get("id")
        if not order_id:
            raise ProviderUnavailableError(
                "Invalid order response from Paymob",
                provider=self.provider,
                provider_code="order_failed",
            )

        expiration_minutes = getattr(settings, "PAYMENT_EXPIRATION_MINUTES", 60)
        key_response = self._post(
            "acceptance/payment_keys",
            {
                "auth_token": token,
                "amount_cents": amount_cents,
                "expiration": expiration_minutes * 60,
                "order_id": order_id,
                "billing_data": self._billing_data(context),
                "currency": currency,
                "integration_id": self._integration_id(context.payment_method),
            },
            {**log_context, "order_id": order_id},
        )
        payment_key = key_response.get("token")
        if not payment_key:
            raise ProviderUnavailableError(
                "Invalid payment key response from Paymob",
                provider=self.provider,
                provider_code="payment_key_failed",
                details={"order_id": str(order_id)},
            )

        logger.info(
            "Paymob operation completed",
            extra={**log_context, "order_id": order_id},
        )

        iframe_id = getattr(settings, "PAYMOB_IFRAME_ID", "")
        redirect_url = urljoin(
            self._base_url(),
            f"acceptance/iframes/{iframe_id}?payment_token={payment_key}",
        )
        return IntentResult(
            provider_payment_id=str(order_id),
            client_secret=payment_key,
            redirect_url=redirect_url,
        )

    def parse_callback(
        self,
        raw_payload: bytes,
        signature: str | None,
        query: dict[str, Any] | None = None,
    ) -> CallbackResult:
        """
        Verify a Paymob transaction callback and map it to a CallbackResult.

        The HMAC is compared in constant time. A missing HMAC or missing
        secret is a verification failure.
        """
        logger = self.get_logger()
        signature = signature or (query or {}).get("hmac")
        secret = getattr(settings, "PAYMOB_HMAC_SECRET", "")

        try:
            body = json.loads(raw_payload)
        except (TypeError, ValueError):
            logger.warning("Paymob callback payload is not valid JSON")
            raise InvalidSignatureError(
                "Unverifiable Paymob callback payload",
                details={"provider": self.provider},
            )

        transaction = body.get("obj") if isinstance(body, dict) else None
        if not isinstance(transaction, dict):
            logger.warning("Paymob callback has no transaction object")
            raise InvalidSignatureError(
                "Unverifiable Paymob callback payload",
                details={"provider": self.provider},
            )

        if not signature or not secret:
            logger.warning(
                "Paymob callback received without HMAC",
                extra={"secret_configured": bool(secret)},
            )
            raise InvalidSignatureError(
                "Missing Paymob HMAC",
                details={"provider": self.provider},
            )

        expected = compute_hmac(transaction, secret)
        if not hmac.compare_digest(expected, signature.lower()):
            logger.warning(
                "Paymob callback HMAC verification failed",
                extra={"transaction_id": transaction.get("id")},
            )
            raise InvalidSignatureError(
                "Invalid webhook signature",
                details={"provider": self.provider},
            )

        order = transaction.get("order") or {}
        order_id = order.get("id") if isinstance(order, dict) else order
        transaction_id = transaction.get("id")
        if order_id is None or transaction_id is None:
            raise PaymentValidationError(
                "Paymob callback is missing order or transaction id",
                details={"provider": self.provider},
            )

        # Refund and void transactions arrive as child transactions
        is_child = bool(
            transaction.get("has_parent_transaction")
            or transaction.get("is_refunded")
            or transaction.get("is_voided")
        )
        status = None if is_child else transaction_status(transaction)
        event_type = "transaction.refund" if is_child else f"transaction.{status}"

        data = transaction.get("data") or {}
        failure_reason = None
        if status == PaymentStatus.FAILED:
            failure_reason = (
                data.get("message") if isinstance(data, dict) else None
            ) or "Payment failed"

        return CallbackResult(
            success=status == PaymentStatus.SUCCEEDED,
            provider_payment_id=str(order_id),
            transaction_id=str(transaction_id),
            status=status,
            amount=from_minor_units(transaction.get("amount_cents")),
            currency=transaction.get("currency"),
            event_id=f"{transaction_id}:{status or 'refund'}",
            event_type=event_type,
            failure_reason=failure_reason,
            raw_data=body,
        )

    def refund(
        self,
        provider_payment_id: str,
        amount: Decimal,
        prior_transaction_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """Refund part or all of a paid Paymob transaction."""
        if not prior_transaction_id:
            raise PaymentValidationError(
                "Transaction ID is required for Paymob refund",
                details={"provider_payment_id": provider_payment_id},
            )

        amount_cents = to_minor_units(amount)
        log_context = {
            "operation": "refund",
            "order_id": provider_payment_id,
            "transaction_id": prior_transaction_id,
            "amount_cents": amount_cents,
        }
        self.get_logger().info("Starting Paymob operation", extra=log_context)

        token = self._authenticate(log_context)
        body = self._post(
            "acceptance/void_refund/refund",
            {
                "auth_token": token,
                "transaction_id": prior_transaction_id,
                "amount_cents": amount_cents,
            },
            log_context,
        )

        if not body.get("success"):
            self.get_logger().error(
                "Paymob refund was not successful",
                extra={**log_context, "response": body},
            )
            raise ProviderRejectedError(
                "Paymob refund request was not successful",
                provider=self.provider,
                provider_code="refund_rejected",
            )

        self.get_logger().info(
            "Paymob operation completed",
            extra={**log_context, "refund_transaction_id": body.get("id")},
        )
        return RefundResult(
            success=True,
            refund_transaction_id=str(body.get("id")) if body.get("id") else None,
            refunded_amount=from_minor_units(body.get("amount_cents", amount_cents)),
        )

    def get_status(self, provider_payment_id: str) -> StatusResult:
        """Query the latest transaction of a Paymob order."""
        log_context = {"operation": "transaction_inquiry", "order_id": provider_payment_id}
        token = self._authenticate(log_context)
        body = self._post(
            "ecommerce/orders/transaction_inquiry",
            {"auth_token": token, "order_id": provider_payment_id},
            log_context,
        )

        status = transaction_status(body)
        data = body.get("data") or {}
        return StatusResult(
            status=status,
            transaction_id=str(body["id"]) if body.get("id") else None,
            failure_reason=(
                (data.get("message") if isinstance(data, dict) else None)
                if status == PaymentStatus.FAILED
                else None
            ),
        )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_paymob_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate requests exceptions to domain exceptions.

        Raises:
            ProviderRejectedError: 4xx responses other than auth / rate limit
            ProviderUnavailableError: Network errors, timeouts, 401/403/429, 5xx
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}
        provider = PaymentProvider.PAYMOB

        if isinstance(error, requests.HTTPError) and error.response is not None:
            status_code = error.response.status_code
            body = error.response.text[:500]
            if status_code in (401, 403, 429) or status_code >= 500:
                logger.error(
                    "Paymob unavailable",
                    extra={**log_context, "status_code": status_code, "response": body},
                )
                raise ProviderUnavailableError(
                    f"Paymob request failed with status {status_code}",
                    provider=provider,
                    provider_code=str(status_code),
                )
            logger.error(
                "Paymob rejected request",
                extra={**log_context, "status_code": status_code, "response": body},
            )
            raise ProviderRejectedError(
                f"Paymob rejected the request with status {status_code}",
                provider=provider,
                provider_code=str(status_code),
            )

        if isinstance(error, ValueError):
            logger.error("Invalid JSON from Paymob", extra=log_context)
            raise ProviderUnavailableError(
                "Invalid response from Paymob",
                provider=provider,
                provider_code="invalid_response",
            )

        if isinstance(error, requests.RequestException):
            logger.error("Connection error to Paymob", extra=log_context, exc_info=True)
            raise ProviderUnavailableError(
                "Could not connect to Paymob. Please retry.",
                provider=provider,
                provider_code="connection_error",
            )

        logger.error(
            f"Unexpected error from Paymob: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise ProviderUnavailableError(
            f"Unexpected Paymob error: {error}",
            provider=provider,
            provider_code="unknown_error",
        )
