"""Timetable slot data model for slotplan."""

from typing import List, Optional
from pydantic import BaseModel, Field, model_validator


class TimetableSlot(BaseModel):
    """A recurring weekly availability window.

    Weekday numbering is 0 = Sunday ... 6 = Saturday. The optional area and
    project set form the slot's capability filter.
    """

    id: str = Field(..., description="Unique slot identifier")
    user_id: str = Field(..., description="User ID who owns this slot")
    weekday: int = Field(..., ge=0, le=6, description="Weekday (0 = Sunday)")
    start_minute: int = Field(..., ge=0, le=1439, description="Start minute of day")
    end_minute: int = Field(..., ge=1, le=1440, description="End minute of day (exclusive)")
    label: Optional[str] = Field(None, description="Display label")
    area_id: Optional[str] = Field(None, description="Area whose projects' tasks may use this slot")
    project_ids: List[str] = Field(default_factory=list, description="Projects whose tasks may use this slot")

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_minute <= self.start_minute:
            raise ValueError("end_minute must be after start_minute")
        return self

    @property
    def length_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def accepts(self, task) -> bool:
        """Whether a task may be placed in this slot.

        A slot matches when its area is the area of the task's project, or when
        the task's project is in the slot's project set. A task without a
        project never matches.
        """
        if self.area_id and task.area_id == self.area_id:
            return True
        if task.project_id:
            return task.project_id in self.project_ids
        return False
