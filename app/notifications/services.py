"""
Notification fan-out service.

Operations:
    create: Best-effort durable record + realtime push to a connected owner
    create_bulk: One notification per recipient (used by the Celery task)
    list_for_user: Newest-first inbox with unread count
    mark_read / mark_all_read / delete: Owner-scoped mutations

create() never raises. It is called as a side effect of other business
actions (a booking, a shared resource, a message to an offline user) and
must not make them fail; every failure is logged with its traceback and
None is returned.

Error Codes:
    NOTIFICATION_NOT_FOUND: Notification id does not exist
    NOT_OWNER: Requester neither owns the notification nor is an admin
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.utils import timezone

from accounts.directory import UserDirectory
from core.exceptions import ValidationError
from core.services import BaseService, ServiceResult
from notifications.models import Notification
from notifications.payloads import validate_payload
from notifications.serializers import NotificationSerializer

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

    from accounts.models import User
    from messaging.connections import ConnectionManager

LIST_LIMIT = 50


@dataclass
class NotificationInbox:
    notifications: list[Notification]
    unread_count: int


def notification_event(notification: Notification) -> dict[str, Any]:
    """Client frame announcing a new notification."""
    return {
        "type": "notification",
        "notification": dict(NotificationSerializer(notification).data),
    }


class NotificationService(BaseService):
    """Stores notifications and pushes them to connected owners."""

    @classmethod
    def create(
        cls,
        user_id: int,
        notification_type: str,
        title: str,
        message: str = "",
        data: dict[str, Any] | None = None,
        connections: ConnectionManager | None = None,
    ) -> Notification | None:
        """
        Store a notification and push it if the owner is connected.

        Returns:
            The stored notification, or None when it could not be created
        """
        logger = cls.get_logger()
        try:
            payload = validate_payload(notification_type, data)
            if UserDirectory.get_user(user_id) is None:
                logger.warning(
                    f"Skipped {notification_type} notification for unknown user {user_id}"
                )
                return None
            with cls.atomic():
                notification = Notification.objects.create(
                    recipient_id=user_id,
                    type=notification_type,
                    title=title[:200],
                    message=message,
                    data=payload,
                )
        except ValidationError as e:
            logger.warning(f"Rejected {notification_type} notification for user {user_id}: {e}")
            return None
        except Exception:
            logger.exception(f"Failed to create {notification_type} notification for user {user_id}")
            return None

        logger.info(f"Created notification {notification.pk} ({notification_type}) for user {user_id}")
        cls._push(notification, connections)
        return notification

    @classmethod
    def create_bulk(
        cls,
        user_ids: Iterable[int],
        notification_type: str,
        title: str,
        message: str = "",
        data: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """
        Store one notification per existing, active recipient.

        Unlike create(), this raises: it runs inside a Celery task whose
        retry policy handles transient failures.
        """
        payload = validate_payload(notification_type, data)
        recipients = [
            user.pk
            for user in UserDirectory.find_users_by_ids(user_ids).values()
            if user.is_active
        ]
        notifications = Notification.objects.bulk_create(
            [
                Notification(
                    recipient_id=recipient_id,
                    type=notification_type,
                    title=title[:200],
                    message=message,
                    data=payload,
                )
                for recipient_id in sorted(recipients)
            ]
        )
        cls.get_logger().info(
            f"Created {len(notifications)} {notification_type} notifications in bulk"
        )
        return notifications

    @classmethod
    def list_for_user(
        cls,
        requester: User,
        is_read: bool | None = None,
        user_id: int | None = None,
    ) -> NotificationInbox:
        """
        Newest notifications of the requester (or of ``user_id`` for admins).

        The unread count covers the whole inbox, not only the returned page.
        """
        owner_id = requester.pk
        if user_id is not None and requester.is_platform_admin:
            owner_id = user_id

        queryset = Notification.objects.filter(recipient_id=owner_id)
        if is_read is not None:
            queryset = queryset.filter(is_read=is_read)

        return NotificationInbox(
            notifications=list(queryset.order_by("-created_at", "-id")[:LIST_LIMIT]),
            unread_count=Notification.objects.filter(recipient_id=owner_id, is_read=False).count(),
        )

    @classmethod
    def unread_count(cls, user_id: int) -> int:
        return Notification.objects.filter(recipient_id=user_id, is_read=False).count()

    @classmethod
    def mark_read(cls, notification_id: int, requester: User) -> ServiceResult[Notification]:
        """Mark a notification read. Idempotent for already read ones."""
        result = cls._get_for_mutation(notification_id, requester)
        if not result:
            return result
        notification = result.data

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
            cls.get_logger().debug(f"Notification {notification_id} marked read")
        return ServiceResult.success(notification)

    @classmethod
    def mark_all_read(cls, requester: User) -> ServiceResult[int]:
        """Mark every unread notification of the requester read; returns the count."""
        count = Notification.objects.filter(recipient_id=requester.pk, is_read=False).update(
            is_read=True, updated_at=timezone.now()
        )
        cls.get_logger().info(f"Marked {count} notifications read for user {requester.pk}")
        return ServiceResult.success(count)

    @classmethod
    def delete(cls, notification_id: int, requester: User) -> ServiceResult[None]:
        """Delete a notification owned by the requester (admins may delete any)."""
        result = cls._get_for_mutation(notification_id, requester)
        if not result:
            return result

        result.data.delete()
        cls.get_logger().info(f"User {requester.pk} deleted notification {notification_id}")
        return ServiceResult.success(None)

    @classmethod
    def _get_for_mutation(
        cls, notification_id: int, requester: User
    ) -> ServiceResult[Notification]:
        notification = Notification.objects.filter(pk=notification_id).first()
        if notification is None:
            return ServiceResult.failure(
                "Notification not found", error_code="NOTIFICATION_NOT_FOUND"
            )
        if notification.recipient_id != requester.pk and not requester.is_platform_admin:
            return ServiceResult.failure(
                "You cannot modify this notification", error_code="NOT_OWNER"
            )
        return ServiceResult.success(notification)

    @classmethod
    def _push(cls, notification: Notification, connections: ConnectionManager | None) -> None:
        if connections is None or not connections.is_connected(notification.recipient_id):
            return
        try:
            connections.push_to_user_sync(
                notification.recipient_id,
                notification_event(notification),
                channel="user",
            )
        except Exception:
            cls.get_logger().exception(
                f"Realtime push of notification {notification.pk} failed"
            )
