"""
Celery application for the EventDesk orders backend.

``DJANGO_SETTINGS_MODULE`` is set before the app is instantiated so Celery
reads its configuration from Django settings (``CELERY_`` prefix).
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("eventdesk")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up tasks.py in every installed app
app.autodiscover_tasks()
