from celery import Celery
from celery.schedules import crontab

from core.config import settings

celery_app = Celery(
    "wayfind",
    broker=settings.celery.CELERY_BROKER_URL,
    backend=settings.celery.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_time_limit=settings.celery.CELERY_TASK_TIME_LIMIT,
    task_soft_time_limit=settings.celery.CELERY_TASK_SOFT_TIME_LIMIT,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Serialization settings
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="America/Santiago",
    enable_utc=True,

    # Task routes
    task_routes={
        "src.gtfs_bc.feed.infrastructure.tasks.*": {"queue": "gtfs_static"},
    },

    # Daily staleness check; the task only syncs when the feed is stale
    beat_schedule={
        "check-gtfs-feed-daily": {
            "task": "src.gtfs_bc.feed.infrastructure.tasks.sync_gtfs_feed",
            "schedule": crontab(hour=4, minute=0),
            "options": {"queue": "gtfs_static"},
        },
    },
)

# Autodiscover tasks
celery_app.autodiscover_tasks([
    "src.gtfs_bc.feed.infrastructure",
])
