"""
Constants for the messaging app.

Values that deployments may want to tune (typing TTL, offline
notifications) are read from Django settings; everything here is fixed
protocol or storage behavior.

Import example:
    from messaging.constants import MESSAGE_CONFIG, TRANSPORT_CONFIG
"""

from typing import Final


class MESSAGE_CONFIG:
    """Message content and history paging."""

    MAX_CONTENT_LENGTH: Final[int] = 5000  # Characters, after trimming

    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100


class PRESENCE_CONFIG:
    """In-memory presence and typing state."""

    DEFAULT_TYPING_TTL_SECONDS: Final[float] = 5.0

    # Expiry timers fire this much after the window so the entry is stale by wall clock
    TYPING_TIMER_GRACE_SECONDS: Final[float] = 0.05


class TRANSPORT_CONFIG:
    """WebSocket transport protocol."""

    # Close codes (4000-4999 are application defined)
    CLOSE_UNAUTHENTICATED: Final[int] = 4001
    CLOSE_SUPERSEDED: Final[int] = 4009

    USER_CHANNEL: Final[str] = "user"
    CONVERSATION_CHANNEL: Final[str] = "conversation"

    CONVERSATION_GROUP_PREFIX: Final[str] = "conversation_"


class RECONNECT_CONFIG:
    """Client reconnection backoff."""

    BASE_DELAY_SECONDS: Final[float] = 1.0
    MAX_DELAY_SECONDS: Final[float] = 30.0
    MULTIPLIER: Final[float] = 2.0
    STABLE_CONNECTION_SECONDS: Final[float] = 10.0
