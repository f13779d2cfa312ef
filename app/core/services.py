"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Returned from every public service operation. Expected
      failures (validation, business rules, provider outages) travel as
      failed results carrying an error code and an HTTP status.
    - Exceptions: Raised inside a service (and by collaborators such as the
      ledger) so that the surrounding transaction rolls back. The public
      operation converts them with ServiceResult.from_exception.

Usage:
    from core.services import BaseService, ServiceResult

    class PayoutManager(BaseService):
        def request_payout(self, mentor_id, amount) -> ServiceResult[Payout]:
            try:
                with self.atomic():
                    self.ledger.reserve_for_payout(mentor_id, amount)
                    payout = Payout.objects.create(...)
            except BaseApplicationError as e:
                return ServiceResult.from_exception(e)
            return ServiceResult.success(payout)

    # In view
    return service_response(manager.request_payout(mentor.id, amount))
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Extra context copied from the originating exception
        http_status: Status the HTTP boundary should answer with on failure
        retryable: Whether the caller may retry the same operation later

    Usage:
        result = orchestrator.refund(payment_id, Decimal("100.00"))
        if result.success:
            payment = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    http_status: int | None = None
    retryable: bool = False

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    # Alias for success() - use whichever reads better in context.
    ok = success

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        http_status: int | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            http_status: Status code for the HTTP boundary (default 400)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            http_status=http_status,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their code, details, HTTP status and retry
        hint. Anything else becomes a 500 with the class name as code.

        Example:
            try:
                ledger.reserve_for_payout(mentor_id, amount)
            except InsufficientBalanceError as e:
                return ServiceResult.from_exception(e)
        """
        if isinstance(exc, BaseApplicationError):
            return cls(
                success=False,
                error=exc.message,
                error_code=error_code or exc.error_code,
                details=exc.details or None,
                http_status=exc.http_status,
                retryable=exc.is_retryable,
            )
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
            http_status=500,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = orchestrator.get_payment_status(payment_id)
            serialized = result.map(lambda p: PaymentSerializer(p).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Collaborators (ledger, adapters, orchestrator) are passed to the
    constructor so that every call site that mutates money is visible.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger named after the service class for easy filtering."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        If any operation fails, all changes are rolled back.
        Nested use creates a savepoint.
        """
        with transaction.atomic():
            yield
