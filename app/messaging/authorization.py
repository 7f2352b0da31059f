"""
Authorization gate deciding who may open a conversation with whom.

Rules, evaluated in order, first match wins:
    1. The requester is an ADMIN                      -> allowed
    2. The requester targets themselves               -> denied
    3. A contact edge exists in either direction      -> allowed
    4. Both users share a general-purpose group       -> allowed
    5. Both users take part in the same mentor group  -> allowed
    6. Otherwise                                      -> denied

"Not allowed" is a False return value. Lookup failures (database errors)
propagate so callers never confuse an outage with a denial.

The self check only guards the gate itself; callers reject self
conversations earlier with their own error code.
"""

from __future__ import annotations

import logging

from accounts.models import UserRole
from network.lookups import RelationshipLookup

logger = logging.getLogger(__name__)


class MessagingAuthorizationService:
    """Stateless messaging eligibility checks."""

    @classmethod
    def can_message(cls, requester_id: int, target_id: int, requester_role: str) -> bool:
        """
        Decide whether ``requester_id`` may start a conversation with ``target_id``.

        Args:
            requester_id: Id of the user asking
            target_id: Id of the counterpart
            requester_role: Role of the requester (UserRole value)
        """
        if requester_role == UserRole.ADMIN:
            return True
        if requester_id == target_id:
            return False
        if RelationshipLookup.has_contact(requester_id, target_id):
            return True
        if RelationshipLookup.shared_group(requester_id, target_id):
            return True
        if RelationshipLookup.shared_mentor_group(requester_id, target_id):
            return True

        logger.debug(f"User {requester_id} may not message user {target_id}")
        return False


def can_message(requester_id: int, target_id: int, requester_role: str) -> bool:
    """Module-level shortcut for MessagingAuthorizationService.can_message."""
    return MessagingAuthorizationService.can_message(requester_id, target_id, requester_role)
