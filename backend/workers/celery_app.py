"""
Celery Application Configuration
"""

from datetime import timedelta

from celery import Celery

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "chaosmart",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.due_events.*": {"queue": "events"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    # Delayed events are also processed on demand through the admin API;
    # this sweep only saves staff from calling it by hand.
    beat_schedule={
        "process-due-events": {
            "task": "workers.due_events.process_due_events",
            "schedule": timedelta(seconds=settings.due_sweep_interval_seconds),
            "options": {"queue": "events"},
        },
    },
)

# Auto-discover tasks
celery_app.autodiscover_tasks(["workers"], related_name="due_events")
