"""Task create/patch with dirty-day propagation."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from slotplan.database.project_repository import ProjectRepository
from slotplan.database.task_repository import TaskRepository
from slotplan.engine.dirty import DirtyDayTracker
from slotplan.engine.errors import NotFoundError, ValidationError
from slotplan.models.constants import EXCLUDED_STATUSES
from slotplan.models.task import Task

logger = logging.getLogger(__name__)

_READ_ONLY_FIELDS = {"id", "user_id", "created_at", "updated_at", "project_name", "area_id"}


class TaskService:
    """Writes tasks and tells the dirty tracker which days they touched."""

    def __init__(self, db: Session):
        self.tasks = TaskRepository(db)
        self.projects = ProjectRepository(db)
        self.tracker = DirtyDayTracker(db)

    def _check_project(self, user_id: str, project_id: Optional[str]) -> None:
        if project_id and not self.projects.get_projects(user_id, [project_id]):
            raise ValidationError("Project not found.")

    def create(self, user_id: str, payload: Dict[str, Any], *, now: datetime) -> Task:
        fields = {key: value for key, value in payload.items() if key not in _READ_ONLY_FIELDS}
        self._check_project(user_id, fields.get("project_id"))
        try:
            task = Task(id=str(uuid.uuid4()), user_id=user_id, created_at=now, updated_at=now, **fields)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        created = self.tasks.create(task)
        self.tracker.on_task_created(created, now=now)
        return created

    def update(self, user_id: str, task_id: str, changes: Dict[str, Any], *, now: datetime) -> Task:
        """Apply a partial update.

        Moving a task into done, archived or cancelled is reported as a
        completion; any other edit goes through the field-change rules.
        """
        old = self.tasks.get(user_id, task_id)
        if old is None:
            raise NotFoundError("Task not found.")

        changes = {key: value for key, value in changes.items() if key not in _READ_ONLY_FIELDS}
        if "project_id" in changes:
            self._check_project(user_id, changes["project_id"])
        merged = {**old.model_dump(), **changes, "updated_at": now}
        try:
            new = Task(**merged)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        saved = self.tasks.update(new)
        if saved.status in EXCLUDED_STATUSES and old.status not in EXCLUDED_STATUSES:
            self.tracker.on_task_completed(saved, now=now)
        else:
            self.tracker.on_task_updated(old, saved, now=now)
        logger.debug(f"Task {task_id} updated: {sorted(changes)}")
        return saved
