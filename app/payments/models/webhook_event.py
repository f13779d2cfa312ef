"""
WebhookEvent model for provider webhook event tracking.

Stores every verified webhook event received from Stripe or Paymob for
idempotent processing and audit trails. The unique (provider, event_id)
constraint ensures duplicate deliveries are detected.

Usage:
    from payments.models import WebhookEvent
    from payments.state_machines import PaymentProvider, WebhookEventStatus

    event, created = WebhookEvent.objects.get_or_create(
        provider=PaymentProvider.STRIPE,
        event_id="evt_1234567890",
        defaults={
            "event_type": "payment_intent.succeeded",
            "payload": webhook_payload,
        },
    )

    if not created and event.is_finished:
        # Duplicate webhook - already handled
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PaymentProvider, WebhookEventStatus, WebhookOutcome


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks provider webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, provider signature verified
        2. Insert/get WebhookEvent with (provider, event_id)
        3. If exists and PROCESSED/IGNORED -> return 200 (duplicate)
        4. Set status to PROCESSING
        5. Apply the forward transition, if any
        6. Set status to PROCESSED, IGNORED or FAILED
        7. FAILED events are processed again when the provider redelivers

    Fields:
        provider: Provider that sent the event
        event_id: Provider event id (Stripe evt_xxx, Paymob transaction id)
        event_type: Type of webhook event
        provider_payment_id: Payment the event refers to
        payload: Full JSON payload from the provider
        status: Processing status
        outcome: What the reconciler did with the event
        processed_at: When the event was handled
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        help_text="Provider that sent the event",
    )

    event_id = models.CharField(
        max_length=255,
        help_text="Provider event id - unique per provider for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Provider event type (e.g., 'payment_intent.succeeded')",
    )

    provider_payment_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        db_index=True,
        help_text="Provider payment id the event refers to",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        default=dict,
        help_text="Full webhook payload from the provider (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    outcome = models.CharField(
        max_length=20,
        choices=WebhookOutcome.choices,
        blank=True,
        default="",
        help_text="What the reconciler did with the event",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was handled",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"]),
            models.Index(fields=["event_type", "created_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "event_id"],
                name="webhook_event_unique_per_provider",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.provider}, {self.event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_finished(self) -> bool:
        """Whether the event was already handled (applied or ignored)."""
        return self.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.IGNORED,
        )

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self, outcome: str = WebhookOutcome.APPLIED) -> None:
        """
        Mark event as handled.

        APPLIED events end PROCESSED; every other outcome ends IGNORED.

        Note: Does not save - caller must save after calling.
        """
        self.outcome = outcome
        self.status = (
            WebhookEventStatus.PROCESSED
            if outcome == WebhookOutcome.APPLIED
            else WebhookEventStatus.IGNORED
        )
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
