"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Payment, MentorBalance constraints
- test_state_transitions.py: Payment, Payout and dispute FSMs
- test_orchestrator.py / test_mentor_ledger.py / test_payout_manager.py /
  test_dispute_resolver.py: Service tests
- test_tasks.py: Reconciliation sweep and hold release tasks
- test_views.py: API endpoint tests

Adapter and webhook tests live beside their packages
(payments/adapters/tests, payments/webhooks/tests).

Usage:
    pytest payments/tests/
    pytest payments/tests/test_orchestrator.py
"""
