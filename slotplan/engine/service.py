"""Schedule operations exposed to the API layer."""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from slotplan.database.schedule_repository import ScheduleRepository
from slotplan.database.user_repository import UserRepository
from slotplan.engine.clock import local_today, safe_timezone_name
from slotplan.engine.dirty import DirtyDayTracker
from slotplan.engine.errors import NotFoundError, ValidationError
from slotplan.engine.planner import DayPlanner
from slotplan.engine.week import WeekPlanner
from slotplan.models.schedule import DayView, DirtyReason, WeekView

logger = logging.getLogger(__name__)


class ScheduleService:
    """Day and week views plus pin/lock updates for one database session."""

    def __init__(self, db: Session, *, day_planner: Optional[DayPlanner] = None):
        self.schedule = ScheduleRepository(db)
        self.users = UserRepository(db)
        self.tracker = DirtyDayTracker(db)
        self.day_planner = day_planner or DayPlanner(db)
        self.week_planner = WeekPlanner(db, day_planner=self.day_planner)

    def get_day(self, user_id: str, day: Optional[date], *, now: datetime) -> DayView:
        """Day view for `day`, or for today in the user's timezone when omitted."""
        profile = self.users.get_profile(user_id)
        if day is None:
            day = local_today(now, safe_timezone_name(profile.timezone))
        return self.day_planner.plan_day(user_id, day, timezone_name=profile.timezone, now=now)

    def get_week(self, user_id: str, *, start_date: Optional[date] = None, now: datetime) -> WeekView:
        profile = self.users.get_profile(user_id)
        return self.week_planner.plan_week(
            user_id,
            start_date=start_date,
            timezone_name=profile.timezone,
            first_day_of_week=profile.first_day_of_week,
            now=now,
        )

    def update_entry_flags(
        self,
        user_id: str,
        entry_id: str,
        *,
        pinned: Optional[bool] = None,
        locked: Optional[bool] = None,
        now: datetime,
    ) -> DayView:
        """Set pinned and/or locked on an entry, then replan its date.

        Args:
            user_id: Owner of the entry
            entry_id: Entry to update
            pinned: New pinned flag, or None to leave it
            locked: New locked flag, or None to leave it
            now: Evaluation instant

        Returns:
            Fresh DayView for the entry's date

        Raises:
            ValidationError: Neither flag was supplied
            NotFoundError: No such entry for this user
        """
        if pinned is None and locked is None:
            raise ValidationError("Provide pinned or locked.")

        entry = self.schedule.set_flags(user_id, entry_id, pinned=pinned, locked=locked)
        if entry is None:
            raise NotFoundError("Schedule entry not found.")

        reason = DirtyReason.PIN_CHANGED if pinned is not None else DirtyReason.LOCK_CHANGED
        self.tracker.on_schedule_entry_flag_changed(entry, reason, now=now)
        logger.info(f"Entry {entry_id} flags updated (pinned={entry.pinned}, locked={entry.locked})")
        return self.get_day(user_id, entry.date, now=now)
