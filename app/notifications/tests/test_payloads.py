"""
Tests for per-type notification payload validation.
"""

import pytest

from core.exceptions import ValidationError
from notifications.models import NotificationType
from notifications.payloads import PAYLOAD_SCHEMAS, validate_payload


class TestValidatePayload:
    def test_every_type_has_a_schema(self):
        assert set(PAYLOAD_SCHEMAS) == set(NotificationType.values)

    def test_system_accepts_empty_payload(self):
        assert validate_payload(NotificationType.SYSTEM, None) == {}

    def test_reminder_defaults_to_high_priority(self, reminder_data):
        payload = validate_payload(NotificationType.REMINDER, reminder_data)

        assert payload["priority"] == "HIGH"
        assert payload["minutes_until_session"] == 15

    def test_reminder_rejects_low_priority(self, reminder_data):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(NotificationType.REMINDER, {**reminder_data, "priority": "LOW"})

        assert exc_info.value.error_code == "INVALID_PAYLOAD"
        assert "priority" in exc_info.value.details

    def test_event_requires_session_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload(NotificationType.EVENT, {"booking_id": 3})

        assert "mentor_id" in exc_info.value.details
        assert "session_start" in exc_info.value.details

    def test_event_renders_datetime_as_string(self):
        payload = validate_payload(
            NotificationType.EVENT,
            {
                "booking_id": 3,
                "mentor_id": 1,
                "mentee_id": 2,
                "event_type": "CONFIRMED",
                "session_title": "Portfolio review",
                "session_start": "2026-05-01T10:00:00Z",
                "duration_minutes": 45,
                "session_type": "ONLINE",
            },
        )

        assert isinstance(payload["session_start"], str)
        assert payload["priority"] == "NORMAL"

    def test_unknown_keys_are_dropped(self):
        payload = validate_payload(
            NotificationType.MESSAGE,
            {"conversation_id": 1, "message_id": 2, "sender_id": 3, "extra": "x"},
        )

        assert "extra" not in payload

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload("BOGUS", {})

        assert exc_info.value.error_code == "UNKNOWN_NOTIFICATION_TYPE"
