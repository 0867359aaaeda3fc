"""Scheduling engine for slotplan."""

from slotplan.engine.errors import SchedulingError, ValidationError, NotFoundError, StorageContentionError
from slotplan.engine.windows import Window, subtract_interval, clip_from
from slotplan.engine.retry import with_contention_retry, is_transient_contention
from slotplan.engine.planner import DayPlanner, allocate_day, partition_entries, partition_tasks
from slotplan.engine.week import WeekPlanner
from slotplan.engine.dirty import DirtyDayTracker
from slotplan.engine.service import ScheduleService
from slotplan.engine.timetable import TimetableService
from slotplan.engine.capacity import CapacityPlanner
from slotplan.engine.tasks import TaskService

__all__ = [
    "SchedulingError",
    "ValidationError",
    "NotFoundError",
    "StorageContentionError",
    "Window",
    "subtract_interval",
    "clip_from",
    "with_contention_retry",
    "is_transient_contention",
    "DayPlanner",
    "allocate_day",
    "partition_entries",
    "partition_tasks",
    "WeekPlanner",
    "DirtyDayTracker",
    "ScheduleService",
    "TimetableService",
    "CapacityPlanner",
    "TaskService",
]
