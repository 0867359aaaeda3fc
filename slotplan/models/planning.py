"""Weekly capacity plan models for slotplan."""

import datetime as dt
from typing import List
from pydantic import BaseModel, Field

from slotplan.models.schedule import TaskSummary


class PlannedTask(TaskSummary):
    planned_duration_minutes: int
    overdue: bool = False


class CapacityDay(BaseModel):
    date: dt.date
    weekday: int
    capacity_minutes: int = 0
    planned_minutes: int = 0
    remaining_minutes: int = 0
    overload_minutes: int = 0
    tasks: List[PlannedTask] = Field(default_factory=list)


class WeekCapacityPlan(BaseModel):
    start_date: dt.date
    end_date: dt.date
    timezone: str
    days: List[CapacityDay] = Field(default_factory=list)
    unassigned_tasks: List[PlannedTask] = Field(default_factory=list)
    unassigned_minutes: int = 0
