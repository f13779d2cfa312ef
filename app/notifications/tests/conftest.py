"""
Test configuration and fixtures for notification tests.

This module provides:
- User fixtures
- Notification fixtures (read/unread, other users')
- API client helpers for authenticated requests

Usage:
    def test_example(user, unread_notification, authenticated_client):
        response = authenticated_client.get('/api/v1/notifications/')
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationFactory


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """User receiving notifications."""
    return UserFactory(email="mona@example.com", full_name="Mona Adel")


@pytest.fixture
def other_user(db):
    return UserFactory()


# =============================================================================
# Notification Fixtures
# =============================================================================


@pytest.fixture
def unread_notification(user):
    return NotificationFactory(recipient=user)


@pytest.fixture
def read_notification(user):
    return NotificationFactory(
        recipient=user,
        type_key="payout_completed",
        title="Payout completed",
        body="Your payout of 300.00 EGP has been sent.",
        is_read=True,
    )


@pytest.fixture
def multiple_unread_notifications(user):
    """Three unread notifications for the user."""
    return NotificationFactory.create_batch(3, recipient=user)


@pytest.fixture
def other_user_notifications(other_user):
    return NotificationFactory.create_batch(3, recipient=other_user)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated as `user` with a JWT access token."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def other_client(other_user):
    client = APIClient()
    refresh = RefreshToken.for_user(other_user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
