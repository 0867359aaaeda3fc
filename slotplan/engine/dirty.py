"""Dirty-day bookkeeping driven by task, entry and timetable events.

The tracker only ever marks days dirty; the day planner is the one that flips
them back to clean after a successful replan.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Iterable, NamedTuple, Optional

from sqlalchemy.orm import Session

from slotplan.database.schedule_repository import ScheduleRepository
from slotplan.database.user_repository import UserRepository
from slotplan.engine.clock import (
    in_horizon,
    local_today,
    minute_of_day,
    safe_timezone_name,
    to_local,
    week_end,
    weekday_index,
)
from slotplan.models.schedule import DirtyReason, ScheduleEntry
from slotplan.models.task import Task

logger = logging.getLogger(__name__)


class _Horizon(NamedTuple):
    timezone: str
    today: date
    end: date
    first_day_of_week: int
    cutoff_minute: int


class DirtyDayTracker:
    """Marks (user, date) pairs stale in response to mutations.

    Every hook returns the dates it marked, in the order they were marked.
    """

    def __init__(self, db: Session):
        self.schedule = ScheduleRepository(db)
        self.users = UserRepository(db)

    def _horizon(self, user_id: str, now: datetime) -> _Horizon:
        profile = self.users.get_profile(user_id)
        timezone_name = safe_timezone_name(profile.timezone)
        today = local_today(now, timezone_name)
        return _Horizon(
            timezone=timezone_name,
            today=today,
            end=week_end(today, profile.first_day_of_week),
            first_day_of_week=profile.first_day_of_week,
            cutoff_minute=minute_of_day(to_local(now, timezone_name)),
        )

    def _mark(self, user_id: str, day: date, horizon: _Horizon, reason: DirtyReason) -> date:
        self.schedule.mark_dirty(user_id, day, timezone=horizon.timezone, reason=reason.value)
        logger.debug(f"Day {day} for user {user_id} marked dirty: {reason.value}")
        return day

    def on_task_created(self, task: Task, *, now: datetime) -> List[date]:
        if not task.is_schedulable:
            return []
        horizon = self._horizon(task.user_id, now)
        if not in_horizon(task.due_date, horizon.today, horizon.first_day_of_week):
            return []
        return [self._mark(task.user_id, task.due_date, horizon, DirtyReason.TASK_CREATED)]

    def on_task_updated(self, old: Task, new: Task, *, now: datetime) -> List[date]:
        """Mark the days affected by an edit.

        A due date move marks both the old and the new date (each only when in
        the horizon). Otherwise a change of due time, duration or project marks
        the unchanged due date.
        """
        horizon = self._horizon(new.user_id, now)
        marked: List[date] = []

        if old.due_date != new.due_date:
            for day in (old.due_date, new.due_date):
                if in_horizon(day, horizon.today, horizon.first_day_of_week):
                    marked.append(self._mark(new.user_id, day, horizon, DirtyReason.DUE_DATE_CHANGED))
            return marked

        changed = (
            old.due_time_minutes != new.due_time_minutes
            or old.estimated_duration_minutes != new.estimated_duration_minutes
            or old.project_id != new.project_id
        )
        if changed and in_horizon(new.due_date, horizon.today, horizon.first_day_of_week):
            marked.append(self._mark(new.user_id, new.due_date, horizon, DirtyReason.TASK_UPDATED))
        return marked

    def on_task_completed(self, task: Task, *, now: datetime) -> List[date]:
        """Mark days still holding entries for a finished task.

        Today is only marked when one of its entries starts after the current
        minute; segments already in the past don't warrant a replan.
        """
        horizon = self._horizon(task.user_id, now)
        entries = self.schedule.list_for_task(task.user_id, task.id, start=horizon.today, end=horizon.end)

        marked: List[date] = []
        for entry in entries:
            if entry.date in marked:
                continue
            if entry.date == horizon.today and entry.start_minute <= horizon.cutoff_minute:
                continue
            marked.append(self._mark(task.user_id, entry.date, horizon, DirtyReason.TASK_COMPLETED))
        return marked

    def on_schedule_entry_flag_changed(
        self, entry: ScheduleEntry, reason: DirtyReason, *, now: datetime
    ) -> date:
        horizon = self._horizon(entry.user_id, now)
        return self._mark(entry.user_id, entry.date, horizon, reason)

    def on_timetable_changed(
        self, user_id: str, weekdays: Iterable[Optional[int]], *, now: datetime
    ) -> List[date]:
        """Mark every horizon date that falls on one of `weekdays`."""
        affected = {weekday for weekday in weekdays if weekday is not None}
        horizon = self._horizon(user_id, now)

        marked: List[date] = []
        day = horizon.today
        while day <= horizon.end:
            if weekday_index(day) in affected:
                marked.append(self._mark(user_id, day, horizon, DirtyReason.TIMETABLE_CHANGED))
            day += timedelta(days=1)
        return marked

    def today(self, user_id: str, now: datetime) -> date:
        """Today in the user's timezone."""
        return self._horizon(user_id, now).today

    def on_slot_entries_removed(self, user_id: str, dates: Iterable[date], *, now: datetime) -> List[date]:
        """Mark dates that lost entries along with a moved slot, inside the horizon or not."""
        horizon = self._horizon(user_id, now)
        return [self._mark(user_id, day, horizon, DirtyReason.TIMETABLE_CHANGED) for day in sorted(set(dates))]
