"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.

Tests run without external services: SQLite replaces PostgreSQL unless
DATABASE_URL is set, the channel layer and cache live in process memory.
"""

import os

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")


def pytest_configure():
    """Configure Django settings before tests run."""
    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }
    settings.SECURE_SSL_REDIRECT = False

    django.setup()


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_consumers.py, ... -> integration
    - test_models.py, test_presence.py, test_client.py, ...   -> unit
    - Unmatched files -> integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    unit_patterns = [
        "test_models.py",
        "test_payloads.py",
        "test_presence.py",
        "test_client.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]
        if filename in unit_patterns:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def api_client():
    """Unauthenticated DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def auth_client():
    """
    Factory returning an APIClient authenticated as the given user.

    Usage:
        def test_example(auth_client):
            client = auth_client(user)
    """
    from rest_framework.test import APIClient

    def make(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return make


@pytest.fixture
def messaging_config():
    """
    The messaging AppConfig with a fresh presence registry and connection manager.

    Tests never share realtime state through the process-wide objects.
    """
    from django.apps import apps

    from messaging.connections import ConnectionManager
    from messaging.delivery import MessageDelivery
    from messaging.presence import PresenceRegistry

    config = apps.get_app_config("messaging")
    saved = (config.presence, config.connections, config.delivery)

    config.presence = PresenceRegistry()
    config.connections = ConnectionManager(config.presence)
    config.delivery = MessageDelivery(config.connections)
    yield config

    config.presence, config.connections, config.delivery = saved


def _patch_postgresql_flush_for_cascade():
    """
    Patch PostgreSQL flush to always use CASCADE.

    TransactionTestCase resets the database with TRUNCATE, which fails on
    tables referenced by foreign keys unless CASCADE is used.
    """
    import django.db.models  # noqa: F401  (avoids a circular import in django.db.backends)
    from django.db.backends.postgresql import operations

    original_sql_flush = operations.DatabaseOperations.sql_flush

    def sql_flush_with_cascade(
        self, style, tables, *, reset_sequences=False, allow_cascade=False
    ):
        return original_sql_flush(
            self, style, tables, reset_sequences=reset_sequences, allow_cascade=True
        )

    operations.DatabaseOperations.sql_flush = sql_flush_with_cascade


_patch_postgresql_flush_for_cascade()
