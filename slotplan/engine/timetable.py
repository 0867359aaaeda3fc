"""Timetable slot management with validation and dirty propagation."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from slotplan.database.project_repository import ProjectRepository
from slotplan.database.schedule_repository import ScheduleRepository
from slotplan.database.timetable_repository import TimetableRepository
from slotplan.engine.dirty import DirtyDayTracker
from slotplan.engine.errors import NotFoundError, ValidationError
from slotplan.models.constants import MINUTES_PER_DAY
from slotplan.models.timetable import TimetableSlot

logger = logging.getLogger(__name__)

_SLOT_FIELDS = ("weekday", "start_minute", "end_minute", "label", "area_id", "project_ids")


def _require_int(value: Any, message: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(message)
    return value


def validate_slot_range(weekday: Any, start_minute: Any, end_minute: Any) -> None:
    """Check the weekday and minute bounds of a slot.

    Raises:
        ValidationError: Any bound is violated
    """
    weekday = _require_int(weekday, "Weekday must be between 0 and 6.")
    if weekday < 0 or weekday > 6:
        raise ValidationError("Weekday must be between 0 and 6.")
    start_minute = _require_int(start_minute, "Start minute must be a whole number.")
    if start_minute < 0 or start_minute >= MINUTES_PER_DAY:
        raise ValidationError("Start minute must be between 0 and 1439.")
    end_minute = _require_int(end_minute, "End minute must be a whole number.")
    if end_minute < 1 or end_minute > MINUTES_PER_DAY:
        raise ValidationError("End minute must be between 1 and 1440.")
    if end_minute <= start_minute:
        raise ValidationError("End minute must be after start minute.")


def normalize_project_ids(project_ids: Optional[List[str]]) -> Optional[List[str]]:
    """Drop empty ids and duplicates, keeping first-seen order."""
    if project_ids is None:
        return None
    seen: List[str] = []
    for project_id in project_ids:
        if project_id and project_id not in seen:
            seen.append(project_id)
    return seen


class TimetableService:
    def __init__(self, db: Session):
        self.slots = TimetableRepository(db)
        self.projects = ProjectRepository(db)
        self.schedule = ScheduleRepository(db)
        self.tracker = DirtyDayTracker(db)

    def _check_area(self, user_id: str, area_id: Optional[str]) -> Optional[str]:
        if area_id is None:
            return None
        if self.projects.get_area(user_id, area_id) is None:
            raise ValidationError("Area not found.")
        return area_id

    def _check_projects(self, user_id: str, project_ids: Optional[List[str]]) -> Optional[List[str]]:
        if not project_ids:
            return project_ids
        if len(self.projects.get_projects(user_id, project_ids)) != len(project_ids):
            raise ValidationError("One or more projects not found.")
        return project_ids

    def list(self, user_id: str, *, weekday: Optional[int] = None) -> List[TimetableSlot]:
        return self.slots.list_for_user(user_id, weekday=weekday)

    def create(self, user_id: str, payload: Dict[str, Any], *, now: datetime) -> TimetableSlot:
        validate_slot_range(payload.get("weekday"), payload.get("start_minute"), payload.get("end_minute"))
        area_id = self._check_area(user_id, payload.get("area_id"))
        project_ids = self._check_projects(user_id, normalize_project_ids(payload.get("project_ids")))

        slot = self.slots.create(
            user_id=user_id,
            weekday=payload["weekday"],
            start_minute=payload["start_minute"],
            end_minute=payload["end_minute"],
            label=payload.get("label"),
            area_id=area_id,
            project_ids=project_ids,
        )
        self.tracker.on_timetable_changed(user_id, [slot.weekday], now=now)
        return slot

    def update(self, user_id: str, slot_id: str, changes: Dict[str, Any], *, now: datetime) -> TimetableSlot:
        """Apply a partial update; keys absent from `changes` are left alone."""
        current = self.slots.get(user_id, slot_id)
        if current is None:
            raise NotFoundError("Timetable slot not found.")

        changes = {key: value for key, value in changes.items() if key in _SLOT_FIELDS}
        for key in ("weekday", "start_minute", "end_minute", "label"):
            if key in changes and changes[key] is None:
                del changes[key]
        validate_slot_range(
            changes.get("weekday", current.weekday),
            changes.get("start_minute", current.start_minute),
            changes.get("end_minute", current.end_minute),
        )
        if "area_id" in changes:
            changes["area_id"] = self._check_area(user_id, changes["area_id"])
        if "project_ids" in changes:
            changes["project_ids"] = self._check_projects(user_id, normalize_project_ids(changes["project_ids"]) or [])

        slot = self.slots.update(user_id, slot_id, **changes)
        if slot.weekday != current.weekday:
            # Entries of the slot sit on old-weekday dates, where it no longer exists.
            moved_from = self.schedule.delete_for_slot(user_id, slot_id, start=self.tracker.today(user_id, now))
            self.tracker.on_slot_entries_removed(user_id, moved_from, now=now)
        self.tracker.on_timetable_changed(user_id, {current.weekday, slot.weekday}, now=now)
        return slot

    def delete(self, user_id: str, slot_id: str, *, now: datetime) -> None:
        current = self.slots.get(user_id, slot_id)
        if current is None:
            raise NotFoundError("Timetable slot not found.")
        self.slots.delete(user_id, slot_id)
        self.tracker.on_timetable_changed(user_id, [current.weekday], now=now)
        logger.info(f"Deleted timetable slot {slot_id} for user {user_id}")
