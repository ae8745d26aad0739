"""Celery configuration for AULAS."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "aulas.settings")

app = Celery("aulas")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
