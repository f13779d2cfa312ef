"""
Payments app for the mentorship marketplace.

This app handles:
- Payment intents with Stripe (USD) and Paymob (EGP)
- Idempotent provider webhooks and stale-payment reconciliation
- Mentor balances, earnings holds and payouts
- Refunds and session disputes

Related apps:
    - authentication: User model for mentees and administrators
    - mentorship: Sessions and mentor profiles being paid for
    - notifications: Payment, payout and dispute notifications

Usage:
    from payments.services import payment_orchestrator

    result = payment_orchestrator.create_payment_intent(
        session_id, PaymentProvider.STRIPE, mentee=mentee
    )

    # Webhooks
    from payments.webhooks import webhook_reconciler
"""
