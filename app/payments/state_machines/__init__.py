"""
State machine enums and helpers for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    PAID_PAYMENT_STATUSES,
    PAYMENT_STATUS_RANK,
    REFUND_RESOLUTIONS,
    DisputeReason,
    DisputeResolution,
    DisputeStatus,
    PaymentProvider,
    PaymentStatus,
    PaymobPaymentMethod,
    PayoutStatus,
    WebhookEventStatus,
    WebhookOutcome,
)

__all__ = [
    "PAID_PAYMENT_STATUSES",
    "PAYMENT_STATUS_RANK",
    "REFUND_RESOLUTIONS",
    "DisputeReason",
    "DisputeResolution",
    "DisputeStatus",
    "PaymentProvider",
    "PaymentStatus",
    "PaymobPaymentMethod",
    "PayoutStatus",
    "WebhookEventStatus",
    "WebhookOutcome",
]
