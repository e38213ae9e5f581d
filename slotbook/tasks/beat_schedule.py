# slotbook/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for slotbook.
"""

from datetime import timedelta
from typing import Any

from slotbook.core.config import settings

SWEEP_TASK_NAME = "slotbook.tasks.session_tasks.sweep_completed_sessions"
BLOCK_FILL_TASK_NAME = "slotbook.tasks.session_tasks.fill_block_bookings"

# Main beat schedule configuration
CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Confirmed sessions whose slot has ended become completed
    "sweep-completed-sessions": {
        "task": SWEEP_TASK_NAME,
        "schedule": timedelta(minutes=settings.sweep_interval_minutes),
        "options": {
            "queue": "maintenance",
            "expires": settings.sweep_interval_minutes * 60,
        },
    },
    # Block booking occurrences that have come inside the booking horizon
    "fill-block-bookings": {
        "task": BLOCK_FILL_TASK_NAME,
        "schedule": timedelta(minutes=settings.block_fill_interval_minutes),
        "options": {
            "queue": "maintenance",
            "expires": settings.block_fill_interval_minutes * 60,
        },
    },
}

# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "sweep-completed-sessions": {
            "task": SWEEP_TASK_NAME,
            "schedule": timedelta(minutes=5),
            "options": {"queue": "celery"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
