"""
WebSocket URL routing for the messaging application.

URL Patterns:
    ws/realtime/ - The single realtime connection of an authenticated user

Authentication:
    JWT access token as ?token=<jwt> or subprotocol ["jwt", <jwt>];
    see messaging.middleware.JWTAuthMiddleware.
"""

from django.apps import apps
from django.urls import path

from messaging.consumers import RealtimeConsumer


def build_websocket_urlpatterns(config=None):
    """
    URL patterns whose consumers share the app's realtime collaborators.

    Args:
        config: Object exposing ``connections``, ``presence`` and
            ``delivery``; defaults to the messaging AppConfig
    """
    if config is None:
        config = apps.get_app_config("messaging")
    return [
        path(
            "ws/realtime/",
            RealtimeConsumer.as_asgi(
                connections=config.connections,
                presence=config.presence,
                delivery=config.delivery,
            ),
        ),
    ]
