""" Workers are started with "celery -A ledger_project worker -l info"
    and the scheduler with "celery -A ledger_project beat -l info".
    The beat schedule itself lives in settings.CELERY_BEAT_SCHEDULE. """
from __future__ import annotations
import os
from celery import Celery

# ensure Django settings are set for Celery
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ledger_project.settings")

celery_app = Celery("ledger_project")

# read config from Django settings, using CELERY_ prefix
celery_app.config_from_object("django.conf:settings", namespace="CELERY")

# autoload tasks.py from installed apps
celery_app.autodiscover_tasks()
