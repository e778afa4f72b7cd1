# Celery instance is defined in ledger_project/celery.py
# importing it here makes sure the app is loaded whenever Django starts,
# so @shared_task functions in ledger_core bind to it
from .celery import celery_app

__all__ = ("celery_app",)
