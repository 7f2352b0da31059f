"""
Relationship lookups consumed by the messaging authorization gate.

All functions are pure reads. Datastore errors propagate to the caller so
the gate can report a lookup failure instead of a silent "not allowed".
"""

from __future__ import annotations

from django.db.models import Q

from network.models import Contact, GroupMembership, MentorGroup


class RelationshipLookup:
    """Boolean relationship checks between two user ids."""

    @staticmethod
    def has_contact(user_a_id: int, user_b_id: int) -> bool:
        """True when either user has added the other as a contact."""
        return Contact.objects.filter(
            Q(owner_id=user_a_id, contact_id=user_b_id)
            | Q(owner_id=user_b_id, contact_id=user_a_id)
        ).exists()

    @staticmethod
    def shared_group(user_a_id: int, user_b_id: int) -> bool:
        """True when both users belong to at least one common group."""
        return GroupMembership.objects.filter(
            user_id=user_a_id,
            group__memberships__user_id=user_b_id,
        ).exists()

    @staticmethod
    def shared_mentor_group(user_a_id: int, user_b_id: int) -> bool:
        """
        True when both users take part in the same mentor group.

        Taking part means being the group's mentor or one of its mentees,
        so this covers mentor/mentee pairs as well as two mentees of the
        same mentor.
        """
        return (
            MentorGroup.objects.filter(Q(mentor_id=user_a_id) | Q(mentees__id=user_a_id))
            .filter(Q(mentor_id=user_b_id) | Q(mentees__id=user_b_id))
            .exists()
        )
