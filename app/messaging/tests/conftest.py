"""
Test configuration and fixtures for messaging tests.

Provides:
- Users in the roles the authorization gate distinguishes
- A mentor group linking ``mentor`` and ``mentee``
- A conversation between them

Usage:
    def test_example(conversation, mentee, auth_client):
        url = reverse("messaging:conversation-detail", args=[conversation.pk])
        response = auth_client(mentee).get(url)
        assert response.status_code == 200
"""

import pytest

from accounts.tests.factories import AdminFactory, MentorFactory, UserFactory
from messaging.tests.factories import ConversationFactory
from network.tests.factories import MentorGroupFactory


@pytest.fixture
def mentor(db):
    return MentorFactory(first_name="Grace", last_name="Hopper")


@pytest.fixture
def mentee(db):
    return UserFactory(first_name="Alan", last_name="Turing")


@pytest.fixture
def stranger(db):
    """User with no relationship to anybody."""
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminFactory()


@pytest.fixture
def mentor_group(mentor, mentee):
    return MentorGroupFactory(mentor=mentor, mentees=[mentee])


@pytest.fixture
def conversation(mentor, mentee, mentor_group):
    return ConversationFactory(user1=mentor, user2=mentee)
