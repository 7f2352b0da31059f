"""
WSGI entry point for REST-only workers.

Realtime messaging needs config.asgi; this module exists for deployments
that serve the REST API and admin from a separate WSGI pool.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
