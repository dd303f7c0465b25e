"""Celery application configuration."""
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from config import get_settings
from logging_config import setup_logging

settings = get_settings()

celery_app = Celery(
    "load_workflow",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["tasks.celery_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,  # 5 minutes
    task_ignore_result=True,
    # Publishing runs on the request path and must not block it
    task_publish_retry=False,
    broker_connection_timeout=2,
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,
)

# Periodic tasks schedule
celery_app.conf.beat_schedule = {
    # Commit damage removals whose countdown task was lost
    "finalize-expired-damage-removals": {
        "task": "tasks.celery_tasks.finalize_expired_damage_removals",
        "schedule": crontab(minute="*"),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application's structlog setup instead of Celery's own."""
    setup_logging()


if __name__ == "__main__":
    celery_app.start()
