"""
Tests for the health check and the ServiceResult to Response boundary.
"""

from __future__ import annotations

import pytest
from django.db.utils import OperationalError
from django.urls import reverse
from rest_framework import status

from core.exceptions import NotFoundError, ValidationError
from core.services import ServiceResult
from core.views import service_response


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy(self, client):
        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
        }

    def test_database_down(self, client, mocker):
        mocker.patch(
            "core.views.connection.cursor",
            side_effect=OperationalError("connection refused"),
        )

        response = client.get(reverse("health_check"))

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
        assert response.json()["status"] == "unhealthy"

    def test_cache_failure_keeps_service_healthy(self, client, mocker):
        mocker.patch("django.core.cache.cache.set", side_effect=ConnectionError("redis down"))

        response = client.get(reverse("health_check"))

        assert response.status_code == 200
        assert response.json()["cache"] == "disconnected"


class TestServiceResponse:
    def test_success_uses_serializer_and_status(self):
        result = ServiceResult.success({"id": 1})

        response = service_response(
            result, lambda d: {"id": str(d["id"])}, success_status=status.HTTP_201_CREATED
        )

        assert response.status_code == 201
        assert response.data == {"id": "1"}

    def test_success_without_serializer(self):
        response = service_response(ServiceResult.success([1, 2]))

        assert response.status_code == 200
        assert response.data == [1, 2]

    def test_failure_uses_exception_status(self):
        result = ServiceResult.from_exception(
            NotFoundError("Payout not found", details={"payout_id": "abc"})
        )

        response = service_response(result)

        assert response.status_code == 404
        assert response.data == {
            "success": False,
            "error": "Payout not found",
            "error_code": "NOT_FOUND",
            "details": {"payout_id": "abc"},
        }

    def test_failure_without_status_defaults_to_400(self):
        response = service_response(ServiceResult.failure("Bad input", error_code="BAD"))

        assert response.status_code == 400
        assert response.data["error_code"] == "BAD"


class TestServiceResult:
    def test_from_application_error_keeps_code(self):
        result = ServiceResult.from_exception(ValidationError("Amount must be positive"))

        assert not result
        assert result.error_code == "VALIDATION_ERROR"
        assert result.http_status == 400
        assert result.retryable is False

    def test_from_unexpected_error_is_500(self):
        result = ServiceResult.from_exception(KeyError("missing"))

        assert result.http_status == 500
        assert result.error_code == "KEYERROR"

    def test_map_transforms_success_only(self):
        assert ServiceResult.success(2).map(lambda x: x * 10).data == 20

        failed = ServiceResult.failure("nope")
        assert failed.map(lambda x: x * 10) is failed
