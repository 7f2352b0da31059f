"""
Durable, user-owned notifications.

Any subsystem raises a notification through NotificationService.create();
connected owners also receive it over the realtime transport's user
channel. Large fan-outs run as the Celery task
notifications.tasks.fan_out_notification.

Usage:
    from notifications.models import NotificationType
    from notifications.services import NotificationService

    NotificationService.create(
        user_id=mentee.id,
        notification_type=NotificationType.SYSTEM,
        title="Scheduled maintenance tonight",
    )
"""
