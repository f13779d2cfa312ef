"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    created → pending_confirmation → succeeded → partially_refunded → fully_refunded
    succeeded → fully_refunded
    created/pending_confirmation → failed

Payout States:
    pending → processing → completed
    pending/processing → failed
    pending → cancelled

Dispute States:
    pending → resolved
"""

from django.db import models


class PaymentProvider(models.TextChoices):
    """
    Third-party payment providers.

    STRIPE charges cards in USD; PAYMOB charges cards and mobile wallets
    in EGP.
    """

    STRIPE = "stripe", "Stripe"
    PAYMOB = "paymob", "Paymob"


class PaymobPaymentMethod(models.IntegerChoices):
    """Paymob sub-type, each mapped to its own integration id."""

    CARD = 1, "Card"
    EWALLET = 2, "Mobile Wallet"


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: FULLY_REFUNDED, FAILED

    State Flow:
        CREATED → PENDING_CONFIRMATION → SUCCEEDED
        SUCCEEDED → PARTIALLY_REFUNDED → FULLY_REFUNDED
        SUCCEEDED → FULLY_REFUNDED

    Failure Flow:
        CREATED / PENDING_CONFIRMATION → FAILED

    Transitions only move forward. A SUCCEEDED payment can never
    return to PENDING_CONFIRMATION.
    """

    CREATED = "created", "Created"
    PENDING_CONFIRMATION = "pending_confirmation", "Pending Confirmation"
    SUCCEEDED = "succeeded", "Succeeded"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    FULLY_REFUNDED = "fully_refunded", "Fully Refunded"
    FAILED = "failed", "Failed"


# Position of each status on the forward path. FAILED shares the rank of
# SUCCEEDED: both settle a pending intent, and neither may be overwritten
# by the other.
PAYMENT_STATUS_RANK = {
    PaymentStatus.CREATED: 0,
    PaymentStatus.PENDING_CONFIRMATION: 1,
    PaymentStatus.SUCCEEDED: 2,
    PaymentStatus.FAILED: 2,
    PaymentStatus.PARTIALLY_REFUNDED: 3,
    PaymentStatus.FULLY_REFUNDED: 4,
}

PAID_PAYMENT_STATUSES = (
    PaymentStatus.SUCCEEDED,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.FULLY_REFUNDED,
)


class PayoutStatus(models.TextChoices):
    """
    States for the Payout model lifecycle.

    Terminal states: COMPLETED, FAILED, CANCELLED

    State Flow:
        PENDING → PROCESSING → COMPLETED
        PENDING / PROCESSING → FAILED (balance restored)
        PENDING → CANCELLED (balance restored, admin-initiated)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class DisputeStatus(models.TextChoices):
    """
    States for the SessionDispute lifecycle.

    PENDING → RESOLVED, irreversible. A NO_REFUND decision is still
    RESOLVED so every dispute ends in an auditable terminal record.
    """

    PENDING = "pending", "Pending"
    RESOLVED = "resolved", "Resolved"


class DisputeReason(models.TextChoices):
    """Why a mentee disputes a completed session."""

    MENTOR_NO_SHOW = "mentor_no_show", "Mentor No-Show"
    TECHNICAL_ISSUES = "technical_issues", "Technical Issues"
    SESSION_QUALITY = "session_quality", "Session Quality"
    OTHER = "other", "Other"


class DisputeResolution(models.TextChoices):
    """Administrator decision closing a dispute."""

    FULL_REFUND = "full_refund", "Full Refund"
    PARTIAL_REFUND = "partial_refund", "Partial Refund"
    NO_REFUND = "no_refund", "No Refund"


REFUND_RESOLUTIONS = (DisputeResolution.FULL_REFUND, DisputeResolution.PARTIAL_REFUND)


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for inbound provider webhook events.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → IGNORED (duplicate / out-of-order / unknown)
        PENDING → PROCESSING → FAILED → PROCESSING (provider redelivery)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    IGNORED = "ignored", "Ignored"
    FAILED = "failed", "Failed"


class WebhookOutcome(models.TextChoices):
    """
    What the reconciler did with a verified webhook event.

    Everything except APPLIED is acknowledged without changing a Payment.
    """

    APPLIED = "applied", "Applied"
    DUPLICATE = "duplicate", "Duplicate Event"
    OUT_OF_ORDER = "out_of_order", "Out of Order"
    UNKNOWN_PAYMENT = "unknown_payment", "Unknown Payment"
    UNHANDLED_EVENT = "unhandled_event", "Unhandled Event Type"
