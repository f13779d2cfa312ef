"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payments/              - Payment endpoints
        intents/                   - Create payment intent (POST)
        confirm/                   - Confirm a client-driven payment (POST)
        {id}/                      - Payment status (GET, ?refresh=true)
        {id}/refund/               - Refund a payment (POST, admin)
        balance/                   - Current mentor balance (GET)
        payouts/                   - Mentor payouts list/request (GET/POST)
        disputes/                  - Raise a session dispute (POST)
        admin/payouts/             - Payout administration
        admin/disputes/            - Dispute administration
        webhooks/stripe/           - Stripe webhook endpoint (POST)
        webhooks/paymob/           - Paymob webhook endpoint (POST)
    /api/v1/notifications/         - User notifications (list, read, read-all)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Mentorship Payments Admin"
admin.site.site_title = "Payments Admin"
admin.site.index_title = "Payments, payouts and disputes"
