# catalog/worker/schedulers.py
"""
Scheduled task definitions for Celery Beat.
"""
from datetime import timedelta
from catalog.core.config import settings


def get_beat_schedule():
    """
    Generate Celery Beat schedule from configuration.

    Returns:
        Dict of scheduled tasks
    """
    interval = settings.CONSISTENCY_SWEEP_INTERVAL
    return {
        "sweep-category-paths": {
            "task": "consistency:sweep",
            "schedule": timedelta(seconds=interval),
            "options": {"expires": interval},
        }
    }
