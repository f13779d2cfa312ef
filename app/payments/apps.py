"""
Payments app configuration.

This app provides the mentorship payments ledger:
- Stripe and Paymob payment intents, confirmation and refunds
- Mentor balances with hold periods
- Payout requests and admin processing
- Session disputes
- Idempotent webhook reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
