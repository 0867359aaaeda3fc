"""Task data model for slotplan.

Tasks are owned by the task-management side of the application; the
scheduling engine only reads the fields that matter for placement.
"""

from datetime import date, datetime
from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task status enumeration."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    WAITING = "waiting"
    DONE = "done"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class Task(BaseModel):
    """Canonical Task model (scheduling view)."""

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    user_id: str = Field(..., description="User ID who owns this task")
    title: str = Field(..., description="Task title")
    status: TaskStatus = Field(TaskStatus.NOT_STARTED, description="Task status")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")

    # Scheduling fields
    due_date: Optional[date] = Field(None, description="Due date (calendar date in the user's timezone)")
    due_time_minutes: Optional[int] = Field(
        None, ge=0, le=1440, description="Due time as minute of day (null means all day)"
    )
    estimated_duration_minutes: Optional[int] = Field(None, ge=0, description="Estimated duration in minutes")
    defer_until: Optional[datetime] = Field(None, description="Task is hidden before this instant (UTC)")
    priority: int = Field(0, description="Higher priority is scheduled first")

    # Capability matching
    project_id: Optional[str] = Field(None, description="Project the task belongs to")
    project_name: Optional[str] = Field(None, description="Resolved project name (read-only)")
    area_id: Optional[str] = Field(None, description="Area of the task's project (read-only)")

    # Hierarchy / recurrence linkage
    parent_task_id: Optional[str] = Field(None, description="Parent task for sub-tasks")
    recurrence_type: Optional[str] = Field(None, description="Recurrence rule type for templates ('none' if not recurring)")
    recurring_parent_id: Optional[str] = Field(None, description="Template this instance was generated from")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True

    @property
    def is_schedulable(self) -> bool:
        """Whether the task carries everything needed for slot placement."""
        return (
            self.due_date is not None
            and self.due_time_minutes is not None
            and self.estimated_duration_minutes is not None
        )
