"""
Signed provider callback payloads for tests.

Stripe events are signed with the test webhook secret the way
stripe.Webhook.construct_event expects; Paymob transactions are signed
with compute_hmac by the caller.
"""

import hashlib
import hmac
import json
import time
import uuid
from typing import Any

STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
PAYMOB_HMAC_SECRET = "paymob_test_hmac"


def stripe_signature(payload: bytes, secret: str = STRIPE_WEBHOOK_SECRET) -> str:
    """Build a Stripe-Signature header for payload."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(
    event_type: str = "payment_intent.succeeded",
    intent_id: str = "pi_test123456",
    event_id: str | None = None,
    **object_fields: Any,
) -> bytes:
    """Serialized Stripe event around a PaymentIntent object."""
    obj = {
        "id": intent_id,
        "object": "payment_intent",
        "amount": 1000,
        "amount_received": 1000,
        "currency": "usd",
        "latest_charge": "ch_test123456",
        **object_fields,
    }
    return json.dumps(
        {
            "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    ).encode("utf-8")


def paymob_transaction(**overrides: Any) -> dict[str, Any]:
    """Paymob callback transaction object for a successful card charge."""
    transaction = {
        "id": 192036465,
        "pending": False,
        "amount_cents": 50000,
        "success": True,
        "is_auth": False,
        "is_capture": False,
        "is_standalone_payment": True,
        "is_voided": False,
        "is_refunded": False,
        "is_3d_secure": True,
        "integration_id": 1001,
        "has_parent_transaction": False,
        "order": {"id": 217503754},
        "created_at": "2026-10-19T12:00:00.000000",
        "currency": "EGP",
        "source_data": {"pan": "2346", "type": "card", "sub_type": "MasterCard"},
        "error_occured": False,
        "owner": 302852,
        "data": {"message": "Approved"},
    }
    transaction.update(overrides)
    return transaction
