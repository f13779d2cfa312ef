"""
DRF views for payments app.

This module provides API views for:
- Payment intents, confirmation, status and refunds
- Mentor balance
- Payout requests and administration
- Session disputes and their resolution

Related files:
    - services/: PaymentOrchestrator, PayoutManager, DisputeResolver
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/intents/ - Create payment intent for a session
    POST /api/v1/payments/confirm/ - Confirm a payment after checkout
    GET  /api/v1/payments/{id}/ - Payment status (?refresh=true reads through)
    POST /api/v1/payments/{id}/refund/ - Refund a payment (admin)
    GET  /api/v1/payments/balance/ - Current mentor balance
    GET  /api/v1/payments/payouts/ - Mentor's payouts
    POST /api/v1/payments/payouts/ - Request a payout
    GET  /api/v1/payments/admin/payouts/ - All payouts (admin)
    POST /api/v1/payments/admin/payouts/{id}/{action}/ - process|complete|fail|cancel
    POST /api/v1/payments/disputes/ - Raise a dispute
    GET  /api/v1/payments/admin/disputes/ - All disputes (admin)
    POST /api/v1/payments/admin/disputes/{id}/resolve/ - Resolve a dispute

Security:
    - All endpoints require authentication
    - Admin endpoints require is_staff
    - Webhooks live in payments.webhooks.views and verify provider signatures
"""

from __future__ import annotations

import logging

from rest_framework import generics, status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiParameter, extend_schema

from core.views import service_response

from payments.models import MentorBalance, Payment
from payments.serializers import (
    ConfirmPaymentSerializer,
    CreateDisputeSerializer,
    CreatePaymentIntentSerializer,
    DisputeFilterSerializer,
    MentorBalanceSerializer,
    PaymentIntentResponseSerializer,
    PaymentSerializer,
    PayoutCancelSerializer,
    PayoutFailSerializer,
    PayoutFilterSerializer,
    PayoutSerializer,
    RefundSerializer,
    RequestPayoutSerializer,
    ResolveDisputeSerializer,
    SessionDisputeSerializer,
)
from payments.services import (
    DisputeFilters,
    PayoutFilters,
    dispute_resolver,
    payment_orchestrator,
    payout_manager,
)

logger = logging.getLogger(__name__)


def _mentor_profile(user):
    """Mentor profile of the user, or 404 for non-mentors."""
    profile = getattr(user, "mentor_profile", None)
    if profile is None:
        raise NotFound("No mentor profile for this user.")
    return profile


# =============================================================================
# Payments
# =============================================================================


class CreatePaymentIntentView(APIView):
    """
    Create the payment intent for one of the user's sessions.

    POST /api/v1/payments/intents/

    Returns 201 with the client secret (Stripe) or redirect URL (Paymob)
    for a new intent, 200 when the session already had an active one.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_payment_intent",
        request=CreatePaymentIntentSerializer,
        responses={201: PaymentIntentResponseSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CreatePaymentIntentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = payment_orchestrator.create_payment_intent(
            session_id=data["session_id"],
            provider=data["provider"],
            payment_method=data.get("payment_method"),
            mentee=request.user,
        )
        success_status = (
            status.HTTP_201_CREATED
            if result.success and result.data.created
            else status.HTTP_200_OK
        )
        return service_response(
            result,
            lambda intent: PaymentIntentResponseSerializer(intent).data,
            success_status=success_status,
        )


class ConfirmPaymentView(APIView):
    """
    Confirm a payment once the client finished checkout.

    POST /api/v1/payments/confirm/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="confirm_payment",
        request=ConfirmPaymentSerializer,
        responses={200: PaymentSerializer},
        tags=["Payments"],
    )
    def post(self, request):
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if not Payment.objects.filter(
            provider_payment_id=data["payment_intent_id"],
            session_id=data["session_id"],
            mentee=request.user,
        ).exists():
            raise NotFound("Payment not found.")

        result = payment_orchestrator.confirm(data["payment_intent_id"], data["session_id"])
        return service_response(result, lambda p: PaymentSerializer(p).data)


class PaymentDetailView(APIView):
    """
    Payment status for the mentee, the session's mentor or an admin.

    GET /api/v1/payments/{id}/?refresh=true
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment_status",
        parameters=[
            OpenApiParameter(
                name="refresh",
                type=bool,
                location=OpenApiParameter.QUERY,
                description="Ask the provider for the latest status",
                required=False,
            ),
        ],
        responses={200: PaymentSerializer},
        tags=["Payments"],
    )
    def get(self, request, payment_id):
        payment = (
            Payment.objects.select_related("session__mentor")
            .filter(id=payment_id)
            .first()
        )
        if payment is None or not self._can_view(request.user, payment):
            raise NotFound("Payment not found.")

        refresh = request.query_params.get("refresh", "").lower() in ("1", "true", "yes")
        result = payment_orchestrator.get_payment_status(payment_id, refresh=refresh)

        def serialize(p):
            data = PaymentSerializer(p).data
            if p.mentee_id != request.user.pk:
                data.pop("client_secret", None)
            return data

        return service_response(result, serialize)

    @staticmethod
    def _can_view(user, payment: Payment) -> bool:
        return (
            user.is_staff
            or payment.mentee_id == user.pk
            or payment.session.mentor.user_id == user.pk
        )


class PaymentRefundView(APIView):
    """
    Refund a payment (admin).

    POST /api/v1/payments/{id}/refund/

    The mentor's share of the refunded amount is debited from their
    balance when the session's earnings were already credited.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="refund_payment",
        request=RefundSerializer,
        responses={200: PaymentSerializer},
        tags=["Payments - Admin"],
    )
    def post(self, request, payment_id):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = payment_orchestrator.refund(
            payment_id,
            serializer.validated_data["amount"],
            on_applied=payment_orchestrator.adjust_mentor_share,
        )
        return service_response(result, lambda p: PaymentSerializer(p).data)


# =============================================================================
# Balance
# =============================================================================


class MentorBalanceView(APIView):
    """
    Current balance of the authenticated mentor.

    GET /api/v1/payments/balance/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_mentor_balance",
        responses={200: MentorBalanceSerializer},
        tags=["Payments - Mentor"],
    )
    def get(self, request):
        profile = _mentor_profile(request.user)
        try:
            balance = MentorBalance.objects.get(mentor=profile)
        except MentorBalance.DoesNotExist:
            raise NotFound("No balance has been opened for this mentor.")
        return Response(MentorBalanceSerializer(balance).data)


# =============================================================================
# Payouts
# =============================================================================


class PayoutListCreateView(generics.ListAPIView):
    """
    The mentor's payouts, and new payout requests.

    GET  /api/v1/payments/payouts/
    POST /api/v1/payments/payouts/
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PayoutSerializer

    def get_queryset(self):
        profile = _mentor_profile(self.request.user)
        return payout_manager.list_payouts(PayoutFilters(mentor_id=profile.id))

    @extend_schema(
        operation_id="request_payout",
        request=RequestPayoutSerializer,
        responses={201: PayoutSerializer},
        tags=["Payments - Mentor"],
    )
    def post(self, request):
        profile = _mentor_profile(request.user)
        serializer = RequestPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = payout_manager.request_payout(
            profile.id, serializer.validated_data["amount"]
        )
        return service_response(
            result,
            lambda p: PayoutSerializer(p).data,
            success_status=status.HTTP_201_CREATED,
        )


class AdminPayoutListView(generics.ListAPIView):
    """
    All payouts with filters (admin).

    GET /api/v1/payments/admin/payouts/?status=pending&min_amount=250
    """

    permission_classes = [IsAdminUser]
    serializer_class = PayoutSerializer

    @extend_schema(
        operation_id="admin_list_payouts",
        parameters=[PayoutFilterSerializer],
        tags=["Payments - Admin"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        filters = PayoutFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        return payout_manager.list_payouts(PayoutFilters(**filters.validated_data))


class AdminPayoutActionView(APIView):
    """
    Move a payout through its lifecycle (admin).

    POST /api/v1/payments/admin/payouts/{id}/process/
    POST /api/v1/payments/admin/payouts/{id}/complete/
    POST /api/v1/payments/admin/payouts/{id}/fail/      {"reason": "..."}
    POST /api/v1/payments/admin/payouts/{id}/cancel/    {"reason": "..."}
    """

    permission_classes = [IsAdminUser]
    action = None

    @extend_schema(
        operation_id="admin_transition_payout",
        request=PayoutCancelSerializer,
        responses={200: PayoutSerializer},
        tags=["Payments - Admin"],
    )
    def post(self, request, payout_id):
        if self.action == "process":
            result = payout_manager.process(payout_id, admin=request.user)
        elif self.action == "complete":
            result = payout_manager.complete(payout_id)
        elif self.action == "fail":
            serializer = PayoutFailSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = payout_manager.fail(payout_id, serializer.validated_data["reason"])
        else:
            serializer = PayoutCancelSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = payout_manager.cancel(
                payout_id,
                admin=request.user,
                reason=serializer.validated_data.get("reason") or None,
            )
        return service_response(result, lambda p: PayoutSerializer(p).data)


# =============================================================================
# Disputes
# =============================================================================


class DisputeCreateView(APIView):
    """
    Raise a dispute on one of the mentee's completed sessions.

    POST /api/v1/payments/disputes/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_dispute",
        request=CreateDisputeSerializer,
        responses={201: SessionDisputeSerializer},
        tags=["Payments - Disputes"],
    )
    def post(self, request):
        serializer = CreateDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = dispute_resolver.create(
            data["session_id"],
            request.user,
            data["reason"],
            description=data.get("description") or None,
        )
        return service_response(
            result,
            lambda d: SessionDisputeSerializer(d).data,
            success_status=status.HTTP_201_CREATED,
        )


class AdminDisputeListView(generics.ListAPIView):
    """
    All disputes with filters (admin).

    GET /api/v1/payments/admin/disputes/?status=pending
    """

    permission_classes = [IsAdminUser]
    serializer_class = SessionDisputeSerializer

    @extend_schema(
        operation_id="admin_list_disputes",
        parameters=[DisputeFilterSerializer],
        tags=["Payments - Admin"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        filters = DisputeFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        return dispute_resolver.list_disputes(DisputeFilters(**filters.validated_data))


class AdminDisputeResolveView(APIView):
    """
    Resolve a dispute (admin).

    POST /api/v1/payments/admin/disputes/{id}/resolve/
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_resolve_dispute",
        request=ResolveDisputeSerializer,
        responses={200: SessionDisputeSerializer},
        tags=["Payments - Admin"],
    )
    def post(self, request, dispute_id):
        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = dispute_resolver.resolve(
            dispute_id,
            data["resolution"],
            refund_amount=data.get("refund_amount"),
            admin_notes=data.get("admin_notes") or None,
            admin=request.user,
        )
        return service_response(result, lambda d: SessionDisputeSerializer(d).data)
