"""
Application exception hierarchy.

Exception Hierarchy:
    BaseApplicationError (base)
    └── ValidationError - Input validation failures

Services usually report expected failures through ServiceResult. These
exceptions are for code that is naturally raise-based, such as payload
validators called deep inside a service.

Usage:
    from core.exceptions import ValidationError

    raise ValidationError(
        "Invalid payload for EVENT notification",
        error_code="INVALID_PAYLOAD",
        details={"booking_id": ["This field is required."]},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids)
    """

    default_error_code: str = "APPLICATION_ERROR"

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
    """Raised when input fails validation."""

    default_error_code: str = "VALIDATION_ERROR"
