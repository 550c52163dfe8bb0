# catalog/worker/celery_app.py
"""
Celery application configuration for catalog maintenance tasks.
"""
from celery import Celery
from celery.signals import worker_ready
import logging
from catalog.core.config import settings

logger = logging.getLogger(__name__)

# Create Celery app
celery_app = Celery(
    "catalog",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "catalog.worker.tasks.consistency",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_time_limit=1800,  # 30 minute time limit per task
    task_soft_time_limit=1500,  # 25 minutes soft time limit
    task_routes={
        "consistency:*": {"queue": "maintenance"},
    },
)

# Load beat schedule from scheduler module
from catalog.worker.schedulers import get_beat_schedule

celery_app.conf.beat_schedule = get_beat_schedule()


@worker_ready.connect
def at_worker_ready(sender, **kwargs):
    """Log when worker is ready."""
    logger.info("Celery worker is ready.")


if __name__ == "__main__":
    celery_app.start()
