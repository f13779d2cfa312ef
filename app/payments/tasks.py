"""
Celery tasks for payment processing.

This module provides periodic tasks for:
- Reconciling payments stuck in CREATED / PENDING_CONFIRMATION
- Releasing mentor earnings whose hold period is over

Both are scheduled by celery-beat (see CELERY_BEAT_SCHEDULE).

Usage:
    from payments.tasks import reconcile_stale_payments

    reconcile_stale_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from core.exceptions import BaseApplicationError

from payments.exceptions import LockAcquisitionError, ProviderError
from payments.locks import DistributedLock
from payments.models import Payment
from payments.services import mentor_ledger, payment_orchestrator
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BATCH_SIZE = 100

# A sweep must finish well inside the 10 minute schedule
SWEEP_LOCK_TTL = 540

RELEASE_LOCK_TTL = 3000


# =============================================================================
# Stale Payment Sweep
# =============================================================================


@shared_task(bind=True)
def reconcile_stale_payments(self) -> dict:
    """
    Poll the provider for payments left open past PAYMENT_EXPIRATION_MINUTES.

    For each stale payment:
    - Provider success: applied (session finalized, mentor credited)
    - Provider failure or expiry: marked FAILED (never deleted)
    - Still pending: left for the next sweep

    A distributed lock keeps concurrent sweeps from overlapping; a sweep
    that cannot take it exits immediately.

    Returns:
        Dict with counts per resulting status
    """
    try:
        with DistributedLock(
            "payments:reconcile_stale_payments", ttl=SWEEP_LOCK_TTL, blocking=False
        ):
            return _reconcile_stale_payments()
    except LockAcquisitionError:
        logger.info("Stale payment sweep already running, skipping")
        return {"status": "skipped"}


def _reconcile_stale_payments() -> dict:
    cutoff = timezone.now() - timedelta(minutes=settings.PAYMENT_EXPIRATION_MINUTES)
    stale_ids = list(
        Payment.objects.filter(
            status__in=[PaymentStatus.CREATED, PaymentStatus.PENDING_CONFIRMATION],
            created_at__lt=cutoff,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:BATCH_SIZE]
    )

    logger.info(
        f"Reconciling {len(stale_ids)} stale payments",
        extra={"count": len(stale_ids), "cutoff": cutoff.isoformat()},
    )

    counts = {"succeeded": 0, "failed": 0, "pending": 0, "errors": 0}
    for payment_id in stale_ids:
        try:
            status = payment_orchestrator.reconcile_payment(payment_id)
        except ProviderError as e:
            counts["errors"] += 1
            logger.warning(
                "Provider unavailable while reconciling payment",
                extra={"payment_id": str(payment_id), "error_code": e.error_code},
            )
            continue
        except BaseApplicationError as e:
            counts["errors"] += 1
            logger.error(
                f"Failed to reconcile payment: {e}",
                extra={"payment_id": str(payment_id), "error_code": e.error_code},
            )
            continue

        if status == PaymentStatus.FAILED:
            counts["failed"] += 1
        elif status in (PaymentStatus.CREATED, PaymentStatus.PENDING_CONFIRMATION):
            counts["pending"] += 1
        else:
            counts["succeeded"] += 1

    logger.info("Stale payment sweep complete", extra=counts)
    return counts


# =============================================================================
# Earnings Hold Release
# =============================================================================


@shared_task(bind=True)
def release_held_earnings(self) -> dict:
    """
    Move matured held earnings from pending to available.

    A hold matures MENTOR_EARNINGS_HOLD_HOURS after the payment succeeded,
    unless the session has a pending dispute. Releasing is idempotent per
    payment, so overlapping runs are harmless.

    Returns:
        Dict with the number of payments released
    """
    try:
        with DistributedLock(
            "payments:release_held_earnings", ttl=RELEASE_LOCK_TTL, blocking=False
        ):
            payment_ids = list(mentor_ledger.matured_holds()[:BATCH_SIZE])
            released = 0
            for payment_id in payment_ids:
                try:
                    if mentor_ledger.release_held_earnings(payment_id) > 0:
                        released += 1
                except BaseApplicationError as e:
                    logger.error(
                        f"Failed to release held earnings: {e}",
                        extra={"payment_id": str(payment_id)},
                    )
    except LockAcquisitionError:
        logger.info("Held earnings release already running, skipping")
        return {"status": "skipped"}

    logger.info(
        f"Released held earnings for {released} payments",
        extra={"released_count": released},
    )
    return {"released_count": released}
