"""
Webhook reconciler turning provider notifications into payment state.

Each notification runs through one synchronous pipeline:

    verify -> parse -> idempotency check -> apply -> acknowledge

1. The adapter verifies authenticity before anything else is read.
   Failures are logged and answered with 400; nothing is stored.
2. The verified payload becomes a provider-neutral CallbackResult.
3. A WebhookEvent is recorded per (provider, event_id). Events already
   PROCESSED or IGNORED are acknowledged as duplicates.
4. The orchestrator applies the forward transition, if any. Payments
   already at an equal or later state are left alone.
5. The event is marked PROCESSED (applied) or IGNORED (anything else)
   and 200 is returned. Errors while applying mark it FAILED and answer
   503 so the provider redelivers.

Usage:
    from payments.webhooks.reconciler import webhook_reconciler

    result = webhook_reconciler.handle(
        PaymentProvider.STRIPE, request.body, signature, request.GET.dict()
    )
    return HttpResponse(result.message, status=result.status_code)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from django.db.models import F

from core.services import BaseService

from payments.adapters import get_adapter
from payments.exceptions import InvalidSignatureError, PaymentValidationError
from payments.models import WebhookEvent
from payments.services.payment_orchestrator import payment_orchestrator
from payments.state_machines import WebhookEventStatus, WebhookOutcome

if TYPE_CHECKING:
    from payments.adapters import CallbackResult, ProviderAdapter
    from payments.services.payment_orchestrator import PaymentOrchestrator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    """
    What the webhook endpoint answers.

    Attributes:
        status_code: HTTP status for the provider (200, 400 or 503)
        message: Short response body
        outcome: WebhookOutcome when the event was handled
        event: The recorded WebhookEvent, if any
    """

    status_code: int
    message: str
    outcome: str | None = None
    event: WebhookEvent | None = None


class WebhookReconciler(BaseService):
    """
    Idempotent ingestion of provider webhooks.

    Duplicate and out-of-order deliveries change payment state at most
    once; the mentor is credited at most once per session.
    """

    def __init__(
        self,
        orchestrator: PaymentOrchestrator | None = None,
        adapter_factory: Callable[[str], ProviderAdapter] | None = None,
    ):
        self.orchestrator = orchestrator or payment_orchestrator
        self.adapter_factory = adapter_factory or get_adapter

    def handle(
        self,
        provider: str,
        raw_payload: bytes,
        signature: str,
        query: dict[str, Any] | None = None,
    ) -> ReconcileResult:
        """Run one delivery through the pipeline."""
        adapter = self.adapter_factory(provider)

        # Step 1-2: verify and parse
        try:
            callback = adapter.parse_callback(raw_payload, signature, query or {})
        except InvalidSignatureError as e:
            self.get_logger().warning(
                "Webhook signature verification failed",
                extra={"provider": provider, "error": e.message},
            )
            return ReconcileResult(400, "Invalid signature")
        except PaymentValidationError as e:
            self.get_logger().warning(
                "Malformed webhook payload",
                extra={"provider": provider, "error": e.message},
            )
            return ReconcileResult(400, "Invalid payload")

        self.get_logger().info(
            f"Received {provider} webhook: {callback.event_type}",
            extra={
                "provider": provider,
                "event_id": callback.event_id,
                "provider_payment_id": callback.provider_payment_id,
            },
        )

        # Step 3: record the event, drop duplicates
        event, created = WebhookEvent.objects.get_or_create(
            provider=provider,
            event_id=callback.event_id,
            defaults={
                "event_type": callback.event_type,
                "provider_payment_id": callback.provider_payment_id,
                "payload": callback.raw_data,
            },
        )
        if not created and event.is_finished:
            self.get_logger().info(
                "Webhook already processed, returning success",
                extra={"provider": provider, "event_id": callback.event_id},
            )
            return ReconcileResult(200, "Already processed", WebhookOutcome.DUPLICATE, event)

        # Step 4-5: apply and acknowledge
        return self._process(event, callback)

    def _process(self, event: WebhookEvent, callback: CallbackResult) -> ReconcileResult:
        try:
            with self.atomic():
                event = WebhookEvent.objects.select_for_update().get(id=event.id)
                if event.is_finished:
                    return ReconcileResult(
                        200, "Already processed", WebhookOutcome.DUPLICATE, event
                    )

                event.mark_processing()
                applied = self.orchestrator.apply_callback(callback)
                event.mark_processed(applied.outcome)
                event.save()
        except Exception as e:
            # Rolled back: record the failure outside the transaction
            WebhookEvent.objects.filter(id=event.id).update(
                status=WebhookEventStatus.FAILED,
                error_message=str(e),
                retry_count=F("retry_count") + 1,
            )
            self.get_logger().error(
                f"Webhook processing failed: {type(e).__name__}",
                extra={
                    "provider": event.provider,
                    "event_id": event.event_id,
                    "webhook_event_id": str(event.id),
                },
                exc_info=True,
            )
            return ReconcileResult(503, "Processing failed, retry later", None, event)

        self.get_logger().info(
            "Webhook processed",
            extra={
                "provider": event.provider,
                "event_id": event.event_id,
                "outcome": applied.outcome,
                "status": event.status,
            },
        )
        return ReconcileResult(200, "OK", applied.outcome, event)


webhook_reconciler = WebhookReconciler()
