"""SQLAlchemy database models for slotplan."""

from datetime import datetime, timezone
from typing import Union, TypeVar, Type
import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from slotplan.database.database import Base
from slotplan.models.constants import DEFAULT_FIRST_DAY_OF_WEEK, DEFAULT_TIMEZONE
from slotplan.models.task import TaskStatus

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string)."""
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default."""
    if not value:
        return default
    try:
        return enum_class(value.lower())
    except (ValueError, AttributeError):
        return default


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an instant to naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _new_id() -> str:
    return str(uuid.uuid4())


class UserDB(Base):
    """Database model for User."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)

    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)

    # Scheduling preferences
    timezone = Column(String, nullable=False, default=DEFAULT_TIMEZONE)
    first_day_of_week = Column(Integer, nullable=False, default=DEFAULT_FIRST_DAY_OF_WEEK)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from slotplan.models.user import User
        return User(
            id=self.id,
            email=self.email,
            name=self.name,
            timezone=self.timezone or DEFAULT_TIMEZONE,
            first_day_of_week=self.first_day_of_week if self.first_day_of_week is not None else DEFAULT_FIRST_DAY_OF_WEEK,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pydantic(cls, user):
        """Create database model from Pydantic model."""
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            timezone=user.timezone,
            first_day_of_week=user.first_day_of_week,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AreaDB(Base):
    """Database model for an area (a group of projects)."""

    __tablename__ = "areas"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ProjectDB(Base):
    """Database model for a project."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    area_id = Column(String, ForeignKey("areas.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    area = relationship("AreaDB")


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TaskStatus.NOT_STARTED.value, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Scheduling fields
    due_date = Column(Date, nullable=True, index=True)
    due_time_minutes = Column(Integer, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=True)
    defer_until = Column(DateTime, nullable=True)
    priority = Column(Integer, nullable=False, default=0)

    project_id = Column(String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)

    # Hierarchy / recurrence linkage
    parent_task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True, index=True)
    recurrence_type = Column(String, nullable=True)
    recurring_parent_id = Column(String, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)

    project = relationship("ProjectDB")

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from slotplan.models.task import Task
        project = self.project
        return Task(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            status=value_to_enum(self.status, TaskStatus, TaskStatus.NOT_STARTED),
            created_at=self.created_at,
            updated_at=self.updated_at,
            due_date=self.due_date,
            due_time_minutes=self.due_time_minutes,
            estimated_duration_minutes=self.estimated_duration_minutes,
            defer_until=self.defer_until.replace(tzinfo=timezone.utc) if self.defer_until else None,
            priority=self.priority or 0,
            project_id=self.project_id,
            project_name=project.name if project else None,
            area_id=project.area_id if project else None,
            parent_task_id=self.parent_task_id,
            recurrence_type=self.recurrence_type,
            recurring_parent_id=self.recurring_parent_id,
        )

    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            user_id=task.user_id,
            title=task.title,
            status=enum_to_value(task.status),
            created_at=to_naive_utc(task.created_at),
            updated_at=to_naive_utc(task.updated_at),
            due_date=task.due_date,
            due_time_minutes=task.due_time_minutes,
            estimated_duration_minutes=task.estimated_duration_minutes,
            defer_until=to_naive_utc(task.defer_until),
            priority=task.priority or 0,
            project_id=task.project_id,
            parent_task_id=task.parent_task_id,
            recurrence_type=task.recurrence_type,
            recurring_parent_id=task.recurring_parent_id,
        )


timetable_slot_projects = Table(
    "timetable_slot_projects",
    Base.metadata,
    Column("slot_id", String, ForeignKey("timetable_slots.id", ondelete="CASCADE"), primary_key=True),
    Column("project_id", String, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
)


class TimetableSlotDB(Base):
    """Database model for TimetableSlot."""

    __tablename__ = "timetable_slots"
    __table_args__ = (
        Index("ix_timetable_slots_user_weekday_start", "user_id", "weekday", "start_minute"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    weekday = Column(Integer, nullable=False)
    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)
    label = Column(String, nullable=True)

    # Capability filter
    area_id = Column(String, ForeignKey("areas.id", ondelete="SET NULL"), nullable=True)
    projects = relationship("ProjectDB", secondary=timetable_slot_projects, order_by="ProjectDB.id")

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from slotplan.models.timetable import TimetableSlot
        return TimetableSlot(
            id=self.id,
            user_id=self.user_id,
            weekday=self.weekday,
            start_minute=self.start_minute,
            end_minute=self.end_minute,
            label=self.label,
            area_id=self.area_id,
            project_ids=[project.id for project in self.projects],
        )


class ScheduleDayDB(Base):
    """Database model for ScheduleDay."""

    __tablename__ = "schedule_days"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_schedule_day_user_date"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    timezone = Column(String, nullable=True)
    cutoff_minute = Column(Integer, nullable=True)
    dirty = Column(Boolean, nullable=False, default=True)
    dirty_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from slotplan.models.schedule import ScheduleDay
        return ScheduleDay(
            id=self.id,
            user_id=self.user_id,
            date=self.date,
            timezone=self.timezone,
            cutoff_minute=self.cutoff_minute,
            dirty=self.dirty,
            dirty_reason=self.dirty_reason,
        )


class ScheduleEntryDB(Base):
    """Database model for ScheduleEntry."""

    __tablename__ = "schedule_entries"
    __table_args__ = (
        Index("ix_schedule_entries_user_date", "user_id", "date"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)

    start_minute = Column(Integer, nullable=False)
    end_minute = Column(Integer, nullable=False)

    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_id = Column(String, ForeignKey("timetable_slots.id", ondelete="CASCADE"), nullable=False, index=True)

    pinned = Column(Boolean, nullable=False, default=False)
    locked = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    task = relationship("TaskDB")

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from slotplan.models.schedule import ScheduleEntry
        return ScheduleEntry(
            id=self.id,
            user_id=self.user_id,
            date=self.date,
            start_minute=self.start_minute,
            end_minute=self.end_minute,
            task_id=self.task_id,
            slot_id=self.slot_id,
            pinned=self.pinned,
            locked=self.locked,
            task_title=self.task.title if self.task else None,
        )

    @classmethod
    def from_pydantic(cls, entry):
        """Create database model from Pydantic model."""
        return cls(
            id=entry.id,
            user_id=entry.user_id,
            date=entry.date,
            start_minute=entry.start_minute,
            end_minute=entry.end_minute,
            task_id=entry.task_id,
            slot_id=entry.slot_id,
            pinned=entry.pinned,
            locked=entry.locked,
        )
