"""
Celery configuration for background auth jobs.

Beat runs the refresh token cleanup on a fixed interval; the task only
deletes rows that are already terminal (revoked or past expiry).
"""

from celery import Celery

from authcore.core.config import settings

# Create Celery app
celery_app = Celery(
    "authcore",
    broker=settings.redis.url,
    backend=settings.redis.url,
    include=["authcore.tasks.cleanup"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    beat_schedule={
        "cleanup-refresh-tokens": {
            "task": "authcore.tasks.cleanup.cleanup_refresh_tokens",
            "schedule": float(settings.cleanup.cleanup_interval_seconds),
        },
    },
)
