"""
Payment provider adapters.

get_adapter() resolves a PaymentProvider to its adapter. Adapters are
stateless, so one shared instance per provider is enough.

Usage:
    from payments.adapters import get_adapter

    adapter = get_adapter(payment.provider)
    status = adapter.get_status(payment.provider_payment_id)
"""

from __future__ import annotations

from payments.adapters.base import (
    CallbackResult,
    IntentContext,
    IntentResult,
    ProviderAdapter,
    RefundResult,
    StatusResult,
)
from payments.adapters.paymob_adapter import PaymobAdapter
from payments.adapters.stripe_adapter import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import PaymentValidationError
from payments.state_machines import PaymentProvider

_ADAPTERS: dict[str, ProviderAdapter] = {
    PaymentProvider.STRIPE: StripeAdapter(),
    PaymentProvider.PAYMOB: PaymobAdapter(),
}


def get_adapter(provider: str) -> ProviderAdapter:
    """
    Return the adapter for a provider.

    Raises:
        PaymentValidationError: Unknown provider
    """
    try:
        return _ADAPTERS[provider]
    except KeyError:
        raise PaymentValidationError(
            f"Unsupported payment provider: {provider}",
            error_code="UNSUPPORTED_PROVIDER",
            details={"provider": provider},
        )


__all__ = [
    "CallbackResult",
    "IdempotencyKeyGenerator",
    "IntentContext",
    "IntentResult",
    "PaymobAdapter",
    "ProviderAdapter",
    "RefundResult",
    "StatusResult",
    "StripeAdapter",
    "get_adapter",
]
