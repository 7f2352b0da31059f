"""
In-memory presence and typing state.

PresenceRegistry holds two process-wide maps:
    - the online set: user ids with an open realtime connection
    - typing entries: conversation id -> {user id: last refresh time}

Nothing here is persisted; a restart starts from an empty registry.

Write discipline:
    - Only ConnectionManager calls set_online / set_offline.
    - Only typing events of a (user, conversation) pair touch that pair's
      entry (set_typing / expire_typing).
Every mutation runs synchronously inside one event loop turn, so no lock
is taken.

Typing entries expire after ``typing_ttl`` seconds without a refresh.
Expiry is applied lazily by readers and explicitly by the consumer timer
that calls expire_typing().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from messaging.constants import PRESENCE_CONFIG

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypingIndicator:
    """Ephemeral typing signal pushed to the counterpart."""

    user_id: int
    conversation_id: int
    is_typing: bool
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "conversation_id": self.conversation_id,
            "is_typing": self.is_typing,
            "timestamp": self.timestamp.isoformat(),
        }


class PresenceRegistry:
    """
    Process-wide online set and typing map.

    Usage:
        presence = PresenceRegistry(typing_ttl=5)
        presence.set_online(user.id)
        indicator = presence.set_typing(user.id, conversation.id, True)
        presence.typing_in(conversation.id)  # -> [user.id]
    """

    def __init__(self, typing_ttl: float | None = None):
        if typing_ttl is None:
            typing_ttl = getattr(
                settings,
                "MESSAGING_TYPING_TTL_SECONDS",
                PRESENCE_CONFIG.DEFAULT_TYPING_TTL_SECONDS,
            )
        self.typing_ttl = timedelta(seconds=typing_ttl)
        self._online: set[int] = set()
        self._typing: dict[int, dict[int, datetime]] = {}

    # Online set ------------------------------------------------------------

    def set_online(self, user_id: int) -> None:
        self._online.add(user_id)

    def set_offline(self, user_id: int) -> list[int]:
        """
        Remove the user from the online set and drop their typing entries.

        Returns:
            Ids of conversations in which the user was typing, so the
            caller can tell counterparts that typing stopped.
        """
        self._online.discard(user_id)
        cleared = []
        for conversation_id, typists in list(self._typing.items()):
            if typists.pop(user_id, None) is not None:
                cleared.append(conversation_id)
            if not typists:
                del self._typing[conversation_id]
        return cleared

    def is_online(self, user_id: int) -> bool:
        return user_id in self._online

    def online_among(self, user_ids: Iterable[int]) -> set[int]:
        """Subset of ``user_ids`` that is currently online."""
        return self._online.intersection(user_ids)

    # Typing ----------------------------------------------------------------

    def set_typing(self, user_id: int, conversation_id: int, is_typing: bool) -> TypingIndicator:
        """Record (or clear) a typing entry and return the indicator to push."""
        now = timezone.now()
        if is_typing:
            self._typing.setdefault(conversation_id, {})[user_id] = now
        else:
            self._discard_typing(user_id, conversation_id)
        return TypingIndicator(
            user_id=user_id,
            conversation_id=conversation_id,
            is_typing=is_typing,
            timestamp=now,
        )

    def is_typing(self, user_id: int, conversation_id: int) -> bool:
        return user_id in self.typing_in(conversation_id)

    def typing_in(self, conversation_id: int) -> list[int]:
        """User ids currently typing in the conversation; expired entries are purged."""
        typists = self._typing.get(conversation_id)
        if not typists:
            return []
        cutoff = timezone.now() - self.typing_ttl
        for user_id, refreshed_at in list(typists.items()):
            if refreshed_at <= cutoff:
                del typists[user_id]
        if not typists:
            del self._typing[conversation_id]
            return []
        return sorted(typists)

    def expire_typing(self, user_id: int, conversation_id: int) -> TypingIndicator | None:
        """
        Drop the entry if its window has elapsed without a refresh.

        Returns:
            A stop indicator when the entry expired, None when it was
            refreshed in the meantime or is already gone.
        """
        refreshed_at = self._typing.get(conversation_id, {}).get(user_id)
        if refreshed_at is None:
            return None
        now = timezone.now()
        if now - refreshed_at < self.typing_ttl:
            return None
        self._discard_typing(user_id, conversation_id)
        logger.debug(f"Typing entry expired for user {user_id} in conversation {conversation_id}")
        return TypingIndicator(
            user_id=user_id,
            conversation_id=conversation_id,
            is_typing=False,
            timestamp=now,
        )

    def _discard_typing(self, user_id: int, conversation_id: int) -> None:
        typists = self._typing.get(conversation_id)
        if typists is None:
            return
        typists.pop(user_id, None)
        if not typists:
            del self._typing[conversation_id]
