"""
Base exception classes for application-wide error handling.

Every domain error carries three things the HTTP boundary needs:
- message: human-readable description
- error_code: machine-readable code for client handling
- http_status: the status code the boundary answers with

Exception Hierarchy:
    BaseApplicationError (base, 400)
    ├── ValidationError - Bad request shape or amount (400)
    ├── NotFoundError - Resource not found (404)
    ├── ConflictError - State conflicts and illegal transitions (409)
    └── BusinessRuleError - Well-formed request refused by a business rule (422)

Usage:
    from core.exceptions import ValidationError, NotFoundError

    raise ValidationError("Amount must be positive", error_code="INVALID_AMOUNT")

    raise NotFoundError(
        f"Session {session_id} not found",
        error_code="SESSION_NOT_FOUND",
        details={"session_id": str(session_id)},
    )

    # At the HTTP boundary
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    Services normally convert these into ServiceResult failures
    (see core.services.ServiceResult.from_exception) rather than letting
    them reach the view layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, amounts)
        http_status: Status code used when the error reaches the HTTP layer
        is_retryable: Whether the caller may retry the same operation later
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Payout amount exceeds available balance",
                "error_code": "INSUFFICIENT_BALANCE",
                "details": {"required": "300.00", "available": "120.00"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for malformed requests, out-of-range amounts and missing fields.
    Never retried; surfaced to the caller as-is.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a requested resource is not found."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Invalid state transitions
    - Concurrent modification conflicts
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class BusinessRuleError(BaseApplicationError):
    """
    Raised when a well-formed request is refused by a business rule.

    Example:
        raise BusinessRuleError(
            "Dispute window has closed",
            error_code="DISPUTE_WINDOW_CLOSED",
            details={"completed_at": session.completed_at.isoformat()},
        )
    """

    default_error_code: str = "BUSINESS_RULE_VIOLATION"
    http_status: int = 422
