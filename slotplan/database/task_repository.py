"""Repository for Task database operations."""

import logging
from typing import List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_, desc, or_

from slotplan.models.task import Task
from slotplan.models.constants import EXCLUDED_STATUSES
from slotplan.database.models import ProjectDB, TaskDB, enum_to_value, to_naive_utc

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(TaskDB).options(joinedload(TaskDB.project).joinedload(ProjectDB.area))

    def create(self, task: Task) -> Task:
        """Create a new task."""
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        """Get task by ID for a specific user."""
        task_db = self._query().filter(
            TaskDB.id == task_id,
            TaskDB.user_id == user_id,
        ).first()
        return task_db.to_pydantic() if task_db else None

    def get_schedulable(self, user_id: str) -> List[Task]:
        """Get tasks that take part in scheduling.

        Excludes done/archived/cancelled tasks and sub-tasks. Recurrence
        templates are excluded; their generated instances are kept.
        """
        non_recurring = and_(
            or_(TaskDB.recurrence_type.is_(None), TaskDB.recurrence_type == "none"),
            TaskDB.recurring_parent_id.is_(None),
        )
        tasks_db = (
            self._query()
            .filter(
                TaskDB.user_id == user_id,
                TaskDB.status.notin_(EXCLUDED_STATUSES),
                TaskDB.parent_task_id.is_(None),
                or_(non_recurring, TaskDB.recurring_parent_id.isnot(None)),
            )
            .order_by(TaskDB.due_date, desc(TaskDB.priority), TaskDB.created_at)
            .all()
        )
        return [task_db.to_pydantic() for task_db in tasks_db]

    def update(self, task: Task) -> Task:
        """Update an existing task (user_id must match task.user_id)."""
        task_db = self.db.query(TaskDB).filter(
            TaskDB.id == task.id,
            TaskDB.user_id == task.user_id,
        ).first()
        if not task_db:
            raise ValueError(f"Task {task.id} not found")

        task_db.title = task.title
        task_db.status = enum_to_value(task.status)
        task_db.updated_at = to_naive_utc(task.updated_at)
        task_db.due_date = task.due_date
        task_db.due_time_minutes = task.due_time_minutes
        task_db.estimated_duration_minutes = task.estimated_duration_minutes
        task_db.defer_until = to_naive_utc(task.defer_until)
        task_db.priority = task.priority or 0
        task_db.project_id = task.project_id
        task_db.parent_task_id = task.parent_task_id
        task_db.recurrence_type = task.recurrence_type
        task_db.recurring_parent_id = task.recurring_parent_id

        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Updated task {task.id}: {task.title[:50]}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update task {task.id}: {type(e).__name__}: {str(e)}")
            raise
