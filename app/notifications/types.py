"""
Notification templates, keyed by type.

Templates use str.format placeholders filled from the `data` dict passed
to NotificationService.notify. Every placeholder must be present in the
data the sender provides.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    body: str


NOTIFICATION_TYPES: dict[str, NotificationTemplate] = {
    "payment_succeeded": NotificationTemplate(
        title="Payment received",
        body="Your payment of {amount} EGP was successful. Your session is booked.",
    ),
    "payment_failed": NotificationTemplate(
        title="Payment failed",
        body="Your payment could not be completed. {reason}",
    ),
    "payment_refunded": NotificationTemplate(
        title="Refund issued",
        body="A refund of {amount} EGP has been issued for your payment.",
    ),
    "session_booked": NotificationTemplate(
        title="New session booked",
        body="A mentee has paid for a session. You will earn {amount} EGP.",
    ),
    "payout_completed": NotificationTemplate(
        title="Payout completed",
        body="Your payout of {amount} EGP has been sent.",
    ),
    "payout_failed": NotificationTemplate(
        title="Payout failed",
        body="Your payout of {amount} EGP failed and was returned to your balance. {reason}",
    ),
    "payout_cancelled": NotificationTemplate(
        title="Payout cancelled",
        body="Your payout of {amount} EGP was cancelled and returned to your balance.",
    ),
    "dispute_resolved": NotificationTemplate(
        title="Dispute resolved",
        body="Your dispute has been resolved ({resolution}). Refund: {refund_amount} EGP.",
    ),
}
