"""
Core Application - Infrastructure & Base Classes

Generic building blocks used by the domain apps (accounts, network,
messaging, notifications). No domain logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
    - failure_response: ServiceResult -> DRF Response with mapped status

Note:
    Models and views are NOT imported here to avoid AppRegistryNotReady
    errors. Import them directly from their modules.
"""

from .exceptions import BaseApplicationError, ValidationError
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
]
