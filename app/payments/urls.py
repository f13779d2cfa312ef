"""
URL configuration for the payments app.

Routes:
    - POST intents/ - Create payment intent
    - POST confirm/ - Confirm payment
    - GET  <id>/ - Payment status
    - POST <id>/refund/ - Refund (admin)
    - GET  balance/ - Mentor balance
    - GET/POST payouts/ - Mentor payouts
    - POST disputes/ - Raise dispute
    - GET  admin/payouts/, POST admin/payouts/<id>/<action>/
    - GET  admin/disputes/, POST admin/disputes/<id>/resolve/
    - POST webhooks/stripe/, webhooks/paymob/

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import paymob_webhook, stripe_webhook

app_name = "payments"

urlpatterns = [
    # Payments
    path("intents/", views.CreatePaymentIntentView.as_view(), name="create_intent"),
    path("confirm/", views.ConfirmPaymentView.as_view(), name="confirm"),
    path("balance/", views.MentorBalanceView.as_view(), name="balance"),
    path("payouts/", views.PayoutListCreateView.as_view(), name="payouts"),
    path("disputes/", views.DisputeCreateView.as_view(), name="disputes"),
    path("<uuid:payment_id>/", views.PaymentDetailView.as_view(), name="detail"),
    path(
        "<uuid:payment_id>/refund/",
        views.PaymentRefundView.as_view(),
        name="refund",
    ),
    # Admin
    path(
        "admin/payouts/",
        views.AdminPayoutListView.as_view(),
        name="admin_payouts",
    ),
    path(
        "admin/payouts/<uuid:payout_id>/process/",
        views.AdminPayoutActionView.as_view(action="process"),
        name="admin_payout_process",
    ),
    path(
        "admin/payouts/<uuid:payout_id>/complete/",
        views.AdminPayoutActionView.as_view(action="complete"),
        name="admin_payout_complete",
    ),
    path(
        "admin/payouts/<uuid:payout_id>/fail/",
        views.AdminPayoutActionView.as_view(action="fail"),
        name="admin_payout_fail",
    ),
    path(
        "admin/payouts/<uuid:payout_id>/cancel/",
        views.AdminPayoutActionView.as_view(action="cancel"),
        name="admin_payout_cancel",
    ),
    path(
        "admin/disputes/",
        views.AdminDisputeListView.as_view(),
        name="admin_disputes",
    ),
    path(
        "admin/disputes/<uuid:dispute_id>/resolve/",
        views.AdminDisputeResolveView.as_view(),
        name="admin_dispute_resolve",
    ),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("webhooks/paymob/", paymob_webhook, name="paymob_webhook"),
]
