"""Request models for the slotplan HTTP API."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from slotplan.models.task import TaskStatus


class EntryFlagsRequest(BaseModel):
    """Pin and/or lock a schedule entry; omitted flags are left unchanged."""
    pinned: Optional[bool] = None
    locked: Optional[bool] = None


class SlotCreateRequest(BaseModel):
    weekday: int = Field(..., description="Weekday (0 = Sunday)")
    start_minute: int = Field(..., description="Start minute of day")
    end_minute: int = Field(..., description="End minute of day (exclusive)")
    label: Optional[str] = None
    area_id: Optional[str] = None
    project_ids: Optional[List[str]] = None


class SlotUpdateRequest(BaseModel):
    weekday: Optional[int] = None
    start_minute: Optional[int] = None
    end_minute: Optional[int] = None
    label: Optional[str] = None
    area_id: Optional[str] = None
    project_ids: Optional[List[str]] = None


class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: Optional[date] = None
    due_time_minutes: Optional[int] = Field(None, ge=0, le=1440)
    estimated_duration_minutes: Optional[int] = Field(None, ge=0)
    defer_until: Optional[datetime] = None
    priority: int = 0
    project_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    recurrence_type: Optional[str] = None
    recurring_parent_id: Optional[str] = None


class TaskUpdateRequest(BaseModel):
    """Partial task update; only fields present in the body are applied."""
    title: Optional[str] = Field(None, min_length=1)
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None
    due_time_minutes: Optional[int] = Field(None, ge=0, le=1440)
    estimated_duration_minutes: Optional[int] = Field(None, ge=0)
    defer_until: Optional[datetime] = None
    priority: Optional[int] = None
    project_id: Optional[str] = None
