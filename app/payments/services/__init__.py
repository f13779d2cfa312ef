"""
Payment services.

This package contains the business logic for the payment subsystem:

- MentorLedger: Single writer of mentor balances
- PaymentOrchestrator: Payment intents, confirmation, status and refunds
- PayoutManager: Mentor withdrawal lifecycle
- DisputeResolver: Session disputes and their refunds
- convert: Fixed-rate currency conversion

Each service has a module-level default instance wired to the others.

Usage:
    from payments.services import payment_orchestrator, payout_manager

    result = payout_manager.request_payout(mentor.id, Decimal("300.00"))
"""

from payments.services.currency import convert, quantize_money
from payments.services.dispute_resolver import (
    DisputeFilters,
    DisputeResolver,
    dispute_resolver,
)
from payments.services.mentor_ledger import (
    DisputeAdjustment,
    MentorLedger,
    mentor_ledger,
)
from payments.services.payment_orchestrator import (
    PaymentIntentResult,
    PaymentOrchestrator,
    StatusApplication,
    payment_orchestrator,
)
from payments.services.payout_manager import (
    PayoutFilters,
    PayoutManager,
    payout_manager,
)

__all__ = [
    # Currency
    "convert",
    "quantize_money",
    # Ledger
    "DisputeAdjustment",
    "MentorLedger",
    "mentor_ledger",
    # Orchestrator
    "PaymentIntentResult",
    "PaymentOrchestrator",
    "StatusApplication",
    "payment_orchestrator",
    # Payouts
    "PayoutFilters",
    "PayoutManager",
    "payout_manager",
    # Disputes
    "DisputeFilters",
    "DisputeResolver",
    "dispute_resolver",
]
