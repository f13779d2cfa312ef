"""
DRF serializers for the payments app.

This module provides serializers for:
- Payment display, intent creation, confirmation and refunds
- Mentor balance and its history
- Payout requests and admin transitions
- Dispute creation and resolution

Related files:
    - models/: Payment, MentorBalance, Payout, SessionDispute
    - views.py: Payment API views

Usage:
    serializer = CreatePaymentIntentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from payments.models import BalanceEntry, MentorBalance, Payment, Payout, SessionDispute
from payments.models.dispute import ADMIN_NOTES_MAX_LENGTH, DESCRIPTION_MAX_LENGTH
from payments.services.payout_manager import PAYOUT_ORDERINGS
from payments.state_machines import (
    DisputeReason,
    DisputeResolution,
    DisputeStatus,
    PaymentProvider,
    PaymobPaymentMethod,
    PayoutStatus,
)


# =============================================================================
# Payments
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment serializer for API responses.

    The client secret is exposed so the mentee can finish checkout; it is
    only ever returned to the payment's own mentee (see views).
    """

    class Meta:
        model = Payment
        fields = [
            "id",
            "session",
            "provider",
            "payment_method",
            "status",
            "amount",
            "currency",
            "charged_amount",
            "charged_currency",
            "platform_commission",
            "mentor_payout_amount",
            "refund_amount",
            "provider_payment_id",
            "transaction_id",
            "client_secret",
            "checkout_url",
            "failure_reason",
            "paid_at",
            "refunded_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CreatePaymentIntentSerializer(serializers.Serializer):
    """Request body for POST payments/intents/."""

    session_id = serializers.UUIDField()
    provider = serializers.ChoiceField(choices=PaymentProvider.choices)
    payment_method = serializers.ChoiceField(
        choices=PaymobPaymentMethod.choices,
        required=False,
        allow_null=True,
        help_text="Required for Paymob: 1 = card, 2 = mobile wallet",
    )

    def validate(self, attrs):
        if attrs["provider"] == PaymentProvider.PAYMOB and not attrs.get("payment_method"):
            raise serializers.ValidationError(
                {"payment_method": "This field is required for Paymob payments."}
            )
        return attrs


class PaymentIntentResponseSerializer(serializers.Serializer):
    payment = PaymentSerializer()
    client_secret = serializers.CharField(allow_null=True)
    redirect_url = serializers.CharField(allow_null=True)
    created = serializers.BooleanField()


class ConfirmPaymentSerializer(serializers.Serializer):
    """Request body for POST payments/confirm/."""

    payment_intent_id = serializers.CharField(max_length=255)
    session_id = serializers.UUIDField()


class RefundSerializer(serializers.Serializer):
    """Request body for POST payments/<id>/refund/."""

    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01")
    )


# =============================================================================
# Balance
# =============================================================================


class BalanceEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = BalanceEntry
        fields = [
            "id",
            "entry_type",
            "amount",
            "available_after",
            "pending_after",
            "shortfall",
            "reference_type",
            "reference_id",
            "created_at",
        ]
        read_only_fields = fields


class MentorBalanceSerializer(serializers.ModelSerializer):
    """Mentor balance with its most recent movements."""

    last_updated = serializers.DateTimeField(read_only=True)
    recent_entries = serializers.SerializerMethodField()

    class Meta:
        model = MentorBalance
        fields = [
            "available_balance",
            "pending_balance",
            "total_earnings",
            "shortfall",
            "last_updated",
            "recent_entries",
        ]
        read_only_fields = fields

    def get_recent_entries(self, obj) -> list:
        entries = obj.entries.order_by("-created_at")[:20]
        return BalanceEntrySerializer(entries, many=True).data


# =============================================================================
# Payouts
# =============================================================================


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = [
            "id",
            "mentor",
            "amount",
            "currency",
            "status",
            "failure_reason",
            "requested_at",
            "processed_at",
            "completed_at",
            "failed_at",
            "cancelled_at",
            "processed_by",
        ]
        read_only_fields = fields


class RequestPayoutSerializer(serializers.Serializer):
    """Request body for POST payments/payouts/."""

    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class PayoutFailSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class PayoutCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class PayoutFilterSerializer(serializers.Serializer):
    """Query parameters for listing payouts."""

    status = serializers.ChoiceField(choices=PayoutStatus.choices, required=False)
    mentor_id = serializers.UUIDField(required=False)
    min_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    max_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    requested_from = serializers.DateTimeField(required=False)
    requested_to = serializers.DateTimeField(required=False)
    ordering = serializers.ChoiceField(
        choices=sorted(PAYOUT_ORDERINGS), required=False, default="-requested_at"
    )


# =============================================================================
# Disputes
# =============================================================================


class SessionDisputeSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionDispute
        fields = [
            "id",
            "session",
            "mentee",
            "mentor",
            "payment",
            "reason",
            "description",
            "status",
            "resolution",
            "refund_amount",
            "admin_notes",
            "resolved_by",
            "resolved_at",
            "created_at",
        ]
        read_only_fields = fields


class CreateDisputeSerializer(serializers.Serializer):
    """Request body for POST payments/disputes/."""

    session_id = serializers.UUIDField()
    reason = serializers.ChoiceField(choices=DisputeReason.choices)
    description = serializers.CharField(
        max_length=DESCRIPTION_MAX_LENGTH, required=False, allow_blank=True
    )

    def validate(self, attrs):
        if attrs["reason"] == DisputeReason.OTHER and not attrs.get("description", "").strip():
            raise serializers.ValidationError(
                {"description": "A description is required when the reason is 'other'."}
            )
        return attrs


class ResolveDisputeSerializer(serializers.Serializer):
    """Request body for POST payments/admin/disputes/<id>/resolve/."""

    resolution = serializers.ChoiceField(choices=DisputeResolution.choices)
    refund_amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )
    admin_notes = serializers.CharField(
        max_length=ADMIN_NOTES_MAX_LENGTH, required=False, allow_blank=True
    )

    def validate(self, attrs):
        if (
            attrs["resolution"] == DisputeResolution.PARTIAL_REFUND
            and attrs.get("refund_amount") is None
        ):
            raise serializers.ValidationError(
                {"refund_amount": "This field is required for a partial refund."}
            )
        return attrs


class DisputeFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DisputeStatus.choices, required=False)
    reason = serializers.ChoiceField(choices=DisputeReason.choices, required=False)
    mentor_id = serializers.UUIDField(required=False)
    created_from = serializers.DateTimeField(required=False)
    created_to = serializers.DateTimeField(required=False)
