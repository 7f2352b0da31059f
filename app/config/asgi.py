"""
ASGI entry point.

HTTP goes to Django; WebSocket handshakes on ws/realtime/ go through the
origin check and JWT authentication before reaching RealtimeConsumer.
The consumer is bound to the presence registry, connection manager and
delivery service built in MessagingConfig.ready(), which REST views of
this process share.

Run with:
    uvicorn config.asgi:application --host 0.0.0.0 --port 8000
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Settings and the app registry must be ready before consumers import models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from messaging.middleware import JWTAuthMiddleware  # noqa: E402
from messaging.routing import build_websocket_urlpatterns  # noqa: E402

websocket_app = JWTAuthMiddleware(URLRouter(build_websocket_urlpatterns()))

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AllowedHostsOriginValidator(websocket_app),
    }
)
