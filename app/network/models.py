"""
Relationship models read by the messaging authorization gate.

Models:
    Contact: Directed "A added B as a contact" edge
    Group: General-purpose community group
    GroupMembership: User membership in a Group
    MentorGroup: A mentor and the mentees assigned to them

These records are maintained by the community features of the platform;
the messaging core treats them as read-only lookups (see lookups.py).
"""

from django.conf import settings
from django.db import models

from core.models import BaseModel


class Contact(BaseModel):
    """
    Directed contact edge from ``owner`` to ``contact``.

    Either direction is enough for the two users to message each other.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="contacts",
        help_text="User who added the contact",
    )
    contact = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="contact_of",
        help_text="User who was added",
    )

    class Meta:
        db_table = "network_contact"
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "contact"],
                name="network_contact_unique_pair",
            ),
        ]

    def __str__(self) -> str:
        return f"Contact({self.owner_id} -> {self.contact_id})"


class Group(BaseModel):
    """General-purpose group whose members may message each other."""

    name = models.CharField(
        max_length=200,
        help_text="Display name of the group",
    )
    description = models.TextField(
        blank=True,
        help_text="Optional description shown on the group page",
    )

    class Meta:
        db_table = "network_group"

    def __str__(self) -> str:
        return self.name


class GroupMembership(BaseModel):
    """Membership of a user in a Group."""

    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="group_memberships",
    )

    class Meta:
        db_table = "network_group_membership"
        constraints = [
            models.UniqueConstraint(
                fields=["group", "user"],
                name="network_group_membership_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "group"], name="network_gm_user_group_idx"),
        ]


class MentorGroup(BaseModel):
    """
    A mentor together with the mentees assigned to them.

    Everyone in the group (the mentor and all mentees) may message each
    other.
    """

    name = models.CharField(
        max_length=200,
        help_text="Display name of the mentor group",
    )
    mentor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="mentor_groups",
        help_text="Mentor leading the group",
    )
    mentees = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="mentee_groups",
        help_text="Mentees assigned to the mentor",
    )

    class Meta:
        db_table = "network_mentor_group"

    def __str__(self) -> str:
        return self.name
