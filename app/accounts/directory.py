"""
User directory lookup consumed by the messaging core.

The core never writes profile data. It resolves ids to users through this
module and renders them with PublicUserSerializer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.utils import timezone

from accounts.models import User
from core.services import BaseService

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


class UserDirectory(BaseService):
    """Read-side access to users for the messaging and notification apps."""

    @classmethod
    def get_user(cls, user_id: int) -> User | None:
        """Return the active user with ``user_id``, or None."""
        return User.objects.filter(pk=user_id, is_active=True).first()

    @classmethod
    def find_users_by_ids(cls, user_ids: Iterable[int]) -> dict[int, User]:
        """Map each existing id in ``user_ids`` to its user (inactive included)."""
        return {user.pk: user for user in User.objects.filter(pk__in=set(user_ids))}

    @classmethod
    def touch_last_seen(cls, user_id: int) -> datetime:
        """Record that the user's realtime connection just closed; returns the stamp."""
        now = timezone.now()
        User.objects.filter(pk=user_id).update(last_seen_online=now)
        cls.get_logger().debug(f"Stamped last_seen_online for user {user_id}")
        return now
