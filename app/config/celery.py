"""
Celery application of the messaging backend.

The worker only runs notification fan-out (one notification stored and
pushed per recipient of a group or broadcast announcement). Settings are
read from Django settings under the CELERY_ prefix.

Start a worker with:
    celery -A config worker -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("messaging_backend")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
