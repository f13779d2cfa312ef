"""
Mentorship app: mentor profiles and bookable sessions.

Booking and scheduling rules live elsewhere; this app only carries the
session facts the payment ledger depends on (price, paid, completed,
credited).
"""
