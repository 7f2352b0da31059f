"""
Celery tasks for notifications.

Tasks:
    fan_out_notification: Store one notification per recipient for alerts
        that address many users at once (group announcements, reminder
        batches raised by the scheduling subsystem)

Workers run in their own process and hold no realtime connections, so
these notifications are durable only; clients pick them up through the
list endpoint or the unread badge.
"""

from __future__ import annotations

import logging

from celery import shared_task

from core.exceptions import ValidationError
from notifications.services import NotificationService

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def fan_out_notification(
    self,
    user_ids: list[int],
    notification_type: str,
    title: str,
    message: str = "",
    data: dict | None = None,
) -> int:
    """
    Create the same notification for every user in ``user_ids``.

    Returns:
        Number of notifications stored
    """
    try:
        notifications = NotificationService.create_bulk(
            user_ids,
            notification_type=notification_type,
            title=title,
            message=message,
            data=data,
        )
    except ValidationError as e:
        # Retrying cannot fix a malformed payload
        logger.error(f"Dropped {notification_type} fan-out: {e}")
        return 0
    logger.info(
        f"Fan-out of {notification_type} reached {len(notifications)} of {len(user_ids)} users "
        f"(attempt {self.request.retries + 1})"
    )
    return len(notifications)
