"""Constants for slotplan.

This module centralizes all magic numbers and default values used throughout the application.
"""

from slotplan.models.task import TaskStatus


# User defaults
DEFAULT_TIMEZONE = "UTC"
DEFAULT_FIRST_DAY_OF_WEEK = 1  # Monday (0 = Sunday)

# Task statuses that never take part in scheduling
EXCLUDED_STATUSES = (
    TaskStatus.DONE.value,
    TaskStatus.ARCHIVED.value,
    TaskStatus.CANCELLED.value,
)

# Minute-of-day bounds
MINUTES_PER_DAY = 1440

# Weekly capacity planning
DEFAULT_PLANNING_DURATION_MINUTES = 60

# Storage contention retry policy
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY_MS = 50
