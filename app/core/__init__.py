"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps
(mentorship, payments, notifications). No domain logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic version counter

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError, NotFoundError, ConflictError, BusinessRuleError

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
    - service_response: ServiceResult -> DRF Response

Note:
    Models and model mixins are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    BusinessRuleError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "BusinessRuleError",
    "ConflictError",
    "NotFoundError",
    "ValidationError",
]
