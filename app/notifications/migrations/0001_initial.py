import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("SYSTEM", "System"),
                            ("ACTIVITY", "Activity"),
                            ("EVENT", "Session event"),
                            ("REMINDER", "Session reminder"),
                            ("MESSAGE", "Direct message"),
                            ("GROUP", "Group"),
                            ("FEEDBACK", "Feedback"),
                            ("GOAL", "Goal"),
                        ],
                        help_text="Kind of notification; selects the payload schema",
                        max_length=20,
                    ),
                ),
                ("title", models.CharField(help_text="Short headline", max_length=200)),
                ("message", models.TextField(blank=True, help_text="Body text")),
                (
                    "data",
                    models.JSONField(blank=True, default=dict, help_text="Type-specific payload"),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the recipient has read this notification",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User who receives this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "-created_at"], name="notif_recipient_created_idx"
                    ),
                    models.Index(fields=["recipient", "is_read"], name="notif_recipient_read_idx"),
                ],
            },
        ),
    ]
