import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
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
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Group",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                *_timestamps(),
                ("name", models.CharField(help_text="Display name of the group", max_length=200)),
                (
                    "description",
                    models.TextField(
                        blank=True, help_text="Optional description shown on the group page"
                    ),
                ),
            ],
            options={"db_table": "network_group"},
        ),
        migrations.CreateModel(
            name="Contact",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                *_timestamps(),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User who added the contact",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contacts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "contact",
                    models.ForeignKey(
                        help_text="User who was added",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contact_of",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "network_contact",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "contact"), name="network_contact_unique_pair"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="GroupMembership",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                *_timestamps(),
                (
                    "group",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="network.group",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="group_memberships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "network_group_membership",
                "indexes": [
                    models.Index(fields=["user", "group"], name="network_gm_user_group_idx")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("group", "user"), name="network_group_membership_unique"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="MentorGroup",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                *_timestamps(),
                (
                    "name",
                    models.CharField(help_text="Display name of the mentor group", max_length=200),
                ),
                (
                    "mentor",
                    models.ForeignKey(
                        help_text="Mentor leading the group",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mentor_groups",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "mentees",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Mentees assigned to the mentor",
                        related_name="mentee_groups",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"db_table": "network_mentor_group"},
        ),
    ]
