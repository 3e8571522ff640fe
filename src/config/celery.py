"""
Celery application for the order negotiation engine.

DJANGO_SETTINGS_MODULE is set before the app is created so Celery reads
the Django settings (``CELERY_`` prefix), including ``CELERY_BEAT_SCHEDULE``
which drives the deadline sweep and the outbox relay.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("agro_orders")

app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up modules.core.tasks and modules.orders.tasks
app.autodiscover_tasks()
