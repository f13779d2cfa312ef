"""
Payment domain models.

This module contains all payment-related models:
- Payment: A mentee's payment for one session
- MentorBalance: Available, pending and lifetime earnings of a mentor
- BalanceEntry: Immutable history of every balance mutation
- Payout: Mentor withdrawal of available earnings
- SessionDispute: Mentee dispute of a completed session
- WebhookEvent: Provider webhook event tracking for idempotent processing
"""

from payments.models.dispute import SessionDispute
from payments.models.mentor_balance import BalanceEntry, BalanceEntryType, MentorBalance
from payments.models.payment import Payment
from payments.models.payout import Payout
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "BalanceEntry",
    "BalanceEntryType",
    "MentorBalance",
    "Payment",
    "Payout",
    "SessionDispute",
    "WebhookEvent",
]
