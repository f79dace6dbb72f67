"""Celery beat schedule configuration.

Entries follow the Celery docs layout so new periodic jobs can be copied
straight from there.
"""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "payments-reconcile": {
        "task": "payments.reconcile",
        "schedule": settings.celery.reconcile_interval_seconds,
    },
}
