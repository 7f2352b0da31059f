"""
Account models.

The User record is owned by the identity subsystem (registration, invites,
profile editing live outside this project). The messaging core only reads
it: the role drives the authorization gate, the name/avatar fields form the
public profile shown next to conversations and messages.

Related files:
    - managers.py: UserManager for email-based creation
    - directory.py: UserDirectory read interface used by the core
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from accounts.managers import UserManager


class UserRole(models.TextChoices):
    """Platform role of a user."""

    ADMIN = "ADMIN", "Admin"
    MENTOR = "MENTOR", "Mentor"
    MENTEE = "MENTEE", "Mentee"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Platform user identified by email.

    Fields:
        email: Login identifier, unique
        first_name / last_name / avatar: Public display fields
        role: ADMIN, MENTOR or MENTEE
        is_active: Inactive users cannot be messaged or authenticate
        last_seen_online: Stamped when the user's realtime connection closes

    Note:
        Primary keys are integers; conversations store their two
        participants in ascending id order.
    """

    email = models.EmailField(
        unique=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    first_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Given name shown to other users",
    )
    last_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Family name shown to other users",
    )
    avatar = models.URLField(
        max_length=500,
        blank=True,
        help_text="URL of the user's avatar image",
    )
    role = models.CharField(
        max_length=10,
        choices=UserRole.choices,
        default=UserRole.MENTEE,
        db_index=True,
        help_text="Platform role; ADMIN bypasses messaging restrictions",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    last_seen_online = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user's last realtime connection closed",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = "accounts_user"
        verbose_name = "user"
        verbose_name_plural = "users"

    def __str__(self) -> str:
        return self.email

    @property
    def is_platform_admin(self) -> bool:
        """True for users with the ADMIN role."""
        return self.role == UserRole.ADMIN

    def get_full_name(self) -> str:
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self) -> str:
        return self.first_name or self.email
