"""Schedule data models for slotplan: day records, entries and views."""

import datetime as dt
from enum import Enum
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field

from slotplan.models.timetable import TimetableSlot


class DirtyReason(str, Enum):
    """Why a day's schedule went stale."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    DUE_DATE_CHANGED = "due_date_changed"
    TASK_COMPLETED = "task_completed"
    PIN_CHANGED = "pin_changed"
    LOCK_CHANGED = "lock_changed"
    TIMETABLE_CHANGED = "timetable_changed"


class UnassignedReason(str, Enum):
    """Why an eligible task could not be placed."""
    DEFER_UNTIL_BLOCKS = "DEFER_UNTIL_BLOCKS"
    DEADLINE_BEFORE_FIRST_AVAILABLE_SLOT = "DEADLINE_BEFORE_FIRST_AVAILABLE_SLOT"
    NO_MATCHING_SLOT = "NO_MATCHING_SLOT"
    NOT_ENOUGH_CAPACITY_BEFORE_DEADLINE = "NOT_ENOUGH_CAPACITY_BEFORE_DEADLINE"
    SLOT_FRAGMENTATION_TOO_SMALL = "SLOT_FRAGMENTATION_TOO_SMALL"


_REASON_MESSAGES = {
    UnassignedReason.DEFER_UNTIL_BLOCKS: "Defer time is after the task deadline.",
    UnassignedReason.DEADLINE_BEFORE_FIRST_AVAILABLE_SLOT: "Deadline is before the first available slot.",
    UnassignedReason.NO_MATCHING_SLOT: "No compatible timetable slot for this task.",
    UnassignedReason.NOT_ENOUGH_CAPACITY_BEFORE_DEADLINE: "Not enough capacity before the deadline.",
    UnassignedReason.SLOT_FRAGMENTATION_TOO_SMALL: "Available slots are too fragmented to fit the task.",
}

_DEFERRED_TO_LATER_DAY_MESSAGE = "Defer date blocks scheduling on this day."


def reason_message(reason: UnassignedReason, *, deferred_to_later_day: bool = False) -> str:
    """Human-readable message for a rejection reason."""
    if reason == UnassignedReason.DEFER_UNTIL_BLOCKS and deferred_to_later_day:
        return _DEFERRED_TO_LATER_DAY_MESSAGE
    return _REASON_MESSAGES[UnassignedReason(reason)]


class ScheduleDay(BaseModel):
    """Status marker for one (user, date)."""

    id: str = Field(..., description="Unique day record identifier")
    user_id: str = Field(..., description="User ID who owns this day")
    date: dt.date = Field(..., description="Calendar date")
    timezone: Optional[str] = Field(None, description="Timezone snapshot at last evaluation")
    cutoff_minute: Optional[int] = Field(None, description="Minute of day 'today' was last evaluated at")
    dirty: bool = Field(True, description="Whether the schedule must be recomputed")
    dirty_reason: Optional[str] = Field(None, description="What made the day stale")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class ScheduleEntry(BaseModel):
    """One contiguous placement of (part of) a task inside a slot on a date."""

    id: str = Field(..., description="Unique entry identifier")
    user_id: str = Field(..., description="User ID who owns this entry")
    date: dt.date = Field(..., description="Calendar date")
    start_minute: int = Field(..., ge=0, le=1440, description="Segment start (minute of day)")
    end_minute: int = Field(..., ge=0, le=1440, description="Segment end (minute of day, exclusive)")
    task_id: str = Field(..., description="Scheduled task")
    slot_id: str = Field(..., description="Hosting timetable slot")
    pinned: bool = Field(False, description="User protected this segment from replanning")
    locked: bool = Field(False, description="Segment locked from replanning")
    task_title: Optional[str] = Field(None, description="Resolved task title (read-only)")

    @property
    def length_minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def is_flagged(self) -> bool:
        return self.pinned or self.locked


# View models -----------------------------------------------------------------


class Segment(BaseModel):
    entry_id: str
    task_id: str
    task_title: Optional[str] = None
    pinned: bool
    locked: bool
    start_minute: int
    end_minute: int
    slot_id: str


class SlotItem(BaseModel):
    type: Literal["slot"] = "slot"
    slot: TimetableSlot
    capacity_minutes: int
    used_minutes: int
    segments: List[Segment] = Field(default_factory=list)


class PauseItem(BaseModel):
    type: Literal["pause"] = "pause"
    start_minute: int
    end_minute: int


class TaskSummary(BaseModel):
    task_id: str
    title: str
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    area_id: Optional[str] = None
    due_date: Optional[dt.date] = None
    due_time_minutes: Optional[int] = None
    duration_minutes: Optional[int] = None
    priority: int = 0

    @classmethod
    def from_task(cls, task) -> "TaskSummary":
        return cls(
            task_id=task.id,
            title=task.title,
            project_id=task.project_id,
            project_name=task.project_name,
            area_id=task.area_id,
            due_date=task.due_date,
            due_time_minutes=task.due_time_minutes,
            duration_minutes=task.estimated_duration_minutes,
            priority=task.priority or 0,
        )


class UnassignedTask(TaskSummary):
    reason_code: UnassignedReason
    reason_message: str

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class IncompleteTask(TaskSummary):
    missing: List[str] = Field(default_factory=list)


class DayView(BaseModel):
    """Assembled schedule for one date, ready for rendering."""

    date: dt.date
    weekday: int
    cutoff_minute: Optional[int] = None
    items: List[Union[SlotItem, PauseItem]] = Field(default_factory=list)
    unassignedEligible: List[UnassignedTask] = Field(default_factory=list)
    incompleteForScheduling: List[IncompleteTask] = Field(default_factory=list)

    def segments(self) -> List[Segment]:
        """All segments of the day, flattened across slot items."""
        out: List[Segment] = []
        for item in self.items:
            if isinstance(item, SlotItem):
                out.extend(item.segments)
        return out


class WeekView(BaseModel):
    start_date: dt.date
    end_date: dt.date
    timezone: str
    days: List[DayView] = Field(default_factory=list)
