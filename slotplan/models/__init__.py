"""Data models for slotplan."""

from slotplan.models.task import Task, TaskStatus
from slotplan.models.timetable import TimetableSlot
from slotplan.models.user import User, UserProfile
from slotplan.models.schedule import (
    DirtyReason,
    UnassignedReason,
    ScheduleDay,
    ScheduleEntry,
    DayView,
    WeekView,
)

__all__ = [
    "Task",
    "TaskStatus",
    "TimetableSlot",
    "User",
    "UserProfile",
    "DirtyReason",
    "UnassignedReason",
    "ScheduleDay",
    "ScheduleEntry",
    "DayView",
    "WeekView",
]
