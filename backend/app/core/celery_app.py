from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

# Create Celery app
celery_app = Celery(
    "graduation_booklets",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.modules.maintenance.tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
    task_soft_time_limit=settings.CELERY_TASK_SOFT_TIME_LIMIT,
    result_expires=settings.CELERY_RESULT_EXPIRES,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    broker_connection_retry_on_startup=True,
)

# Celery beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "cleanup-expired-graduations": {
        "task": "app.modules.maintenance.tasks.cleanup_expired_graduations",
        "schedule": crontab(hour=3, minute=0),
    },
    "sweep-pending-assets": {
        "task": "app.modules.maintenance.tasks.sweep_pending_assets",
        "schedule": crontab(minute=15),
    },
}
