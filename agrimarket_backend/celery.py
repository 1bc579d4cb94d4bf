"""
Celery application for agrimarket_backend.

Periodic sweeps (overdue loans, expired tokens) are declared in
settings.CELERY_BEAT_SCHEDULE and implemented in marketplace.tasks.
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'agrimarket_backend.settings')

app = Celery('agrimarket_backend')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
