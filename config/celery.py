"""
SupplyTrack — Celery Application

Worker and beat entry point. Periodic schedules are stored in the
database by django-celery-beat.

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('supplytrack')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
