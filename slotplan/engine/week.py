"""Week planner: seven independent day plans."""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from slotplan.engine.clock import local_today, safe_timezone_name, week_start
from slotplan.engine.planner import DayPlanner
from slotplan.models.schedule import WeekView

logger = logging.getLogger(__name__)


class WeekPlanner:
    """Plans a week by planning each of its days in date order."""

    def __init__(self, db: Session, *, day_planner: Optional[DayPlanner] = None):
        self.day_planner = day_planner or DayPlanner(db)

    def plan_week(
        self,
        user_id: str,
        *,
        start_date: Optional[date] = None,
        timezone_name: Optional[str],
        first_day_of_week: int,
        now: datetime,
    ) -> WeekView:
        """Plan the seven days of the week holding `start_date` (default today).

        Days are planned independently and in date order.

        Args:
            user_id: Owner of the schedule
            start_date: Any date inside the wanted week
            timezone_name: User timezone
            first_day_of_week: 0 = Sunday ... 6 = Saturday
            now: Evaluation instant

        Returns:
            WeekView with one DayView per date
        """
        timezone_name = safe_timezone_name(timezone_name)
        anchor = start_date or local_today(now, timezone_name)
        start = week_start(anchor, first_day_of_week)

        days = [
            self.day_planner.plan_day(user_id, start + timedelta(days=offset), timezone_name=timezone_name, now=now)
            for offset in range(7)
        ]
        logger.debug(f"Planned week starting {start} for user {user_id}")
        return WeekView(
            start_date=start,
            end_date=start + timedelta(days=6),
            timezone=timezone_name,
            days=days,
        )
