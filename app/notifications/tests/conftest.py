"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(user, unread_notification, auth_client):
        response = auth_client(user).get("/api/v1/notifications/")
        assert response.status_code == 200
"""

import pytest

from accounts.tests.factories import AdminFactory, UserFactory
from notifications.tests.factories import NotificationFactory


@pytest.fixture
def user(db):
    """Recipient of notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminFactory()


@pytest.fixture
def unread_notification(user):
    return NotificationFactory(recipient=user, title="Unread")


@pytest.fixture
def read_notification(user):
    return NotificationFactory(recipient=user, title="Read", is_read=True)


@pytest.fixture
def mixed_notifications(user):
    """Three unread and two read notifications for ``user``."""
    unread = NotificationFactory.create_batch(3, recipient=user)
    read = NotificationFactory.create_batch(2, recipient=user, is_read=True)
    return unread + read


@pytest.fixture
def reminder_data():
    return {
        "booking_id": 12,
        "session_title": "Career chat",
        "session_start": "2026-05-01T10:00:00Z",
        "minutes_until_session": 15,
    }
