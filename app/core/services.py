"""
Service layer building blocks shared by every domain app.

Services own the business rules of the messaging core. Views and WebSocket
consumers only translate transport concerns (HTTP requests, JSON frames)
into service calls and back.

Two failure styles are used:
    - ServiceResult.failure(...): expected, caller-visible rejections
      (validation, authorization, missing records). The error_code is the
      contract with the REST and WebSocket bindings.
    - Exceptions: unexpected failures (datastore unavailable, bugs). These
      propagate so the critical paths fail loudly.

Usage:
    from core.services import BaseService, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def delete(cls, conversation_id, requester) -> ServiceResult[None]:
            conversation = Conversation.objects.filter(pk=conversation_id).first()
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found",
                    error_code="CONVERSATION_NOT_FOUND",
                )
            with cls.atomic():
                ...
            cls.get_logger().info(f"Deleted conversation {conversation_id}")
            return ServiceResult.success(None)

    # In a view
    result = ConversationService.delete(pk, request.user)
    if not result.success:
        return Response(result.to_response(), status=...)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Result wrapper returned by service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result payload when successful
        error: Human-readable error when failed
        error_code: Machine-readable code mapped to HTTP statuses / frame codes
        errors: Optional field-level errors for validation failures

    Example:
        result = MessageService.append(conversation, sender_id, content)
        if result:
            message = result.data
        else:
            logger.info(f"Rejected send: {result.error_code}")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert a failed result into the API error body.

        Returns:
            {"error": ..., "error_code": ..., "errors": {...}} for failures,
            {"success": True, "data": ...} for successes.
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only; any collaborator with state (the
    presence registry, the connection manager) is passed in explicitly by
    the caller.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls, savepoint: bool = True) -> Generator[None, None, None]:
        """
        Run the enclosed block inside a database transaction.

        Nested calls create savepoints, so a failure inside an inner block
        can be recovered without aborting the outer transaction.
        """
        with transaction.atomic(savepoint=savepoint):
            yield
