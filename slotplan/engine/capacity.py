"""Weekly capacity plan: timetable minutes against task estimates."""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from slotplan.database.task_repository import TaskRepository
from slotplan.database.timetable_repository import TimetableRepository
from slotplan.engine.clock import local_today, safe_timezone_name, weekday_index
from slotplan.models.constants import DEFAULT_PLANNING_DURATION_MINUTES
from slotplan.models.planning import CapacityDay, PlannedTask, WeekCapacityPlan
from slotplan.models.schedule import TaskSummary
from slotplan.models.task import Task

logger = logging.getLogger(__name__)


def planned_duration(task: Task) -> int:
    """Estimated duration, or the planning default when there is no estimate."""
    return task.estimated_duration_minutes or DEFAULT_PLANNING_DURATION_MINUTES


def iso_week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


class CapacityPlanner:
    """Compares each day's slot capacity with the work due that day.

    Weeks always start on Monday here, independent of the user's first day of
    week. Tasks overdue at the start of the week land on its first day.
    """

    def __init__(self, db: Session):
        self.tasks = TaskRepository(db)
        self.timetable = TimetableRepository(db)

    def week_plan(
        self,
        user_id: str,
        *,
        start_date: Optional[date] = None,
        timezone_name: Optional[str],
        now: datetime,
    ) -> WeekCapacityPlan:
        """Compare slot capacity with the work due on each day of an ISO week.

        Args:
            user_id: Owner of the tasks and slots
            start_date: Any date inside the wanted week (default today)
            timezone_name: User timezone, used to resolve today
            now: Evaluation instant

        Returns:
            WeekCapacityPlan starting on the Monday of that week
        """
        timezone_name = safe_timezone_name(timezone_name)
        start = iso_week_start(start_date or local_today(now, timezone_name))
        end = start + timedelta(days=6)

        capacity = self.timetable.minutes_by_weekday(user_id)
        days = []
        for offset in range(7):
            day = start + timedelta(days=offset)
            weekday = weekday_index(day)
            days.append(CapacityDay(date=day, weekday=weekday, capacity_minutes=capacity.get(weekday, 0)))

        unassigned = []
        for task in self.tasks.get_schedulable(user_id):
            summary = TaskSummary.from_task(task).model_dump()
            if task.due_date is None or task.due_date > end:
                unassigned.append(PlannedTask(**summary, planned_duration_minutes=planned_duration(task)))
                continue
            index = max(0, (task.due_date - start).days)
            days[index].tasks.append(
                PlannedTask(
                    **summary,
                    planned_duration_minutes=planned_duration(task),
                    overdue=task.due_date < start,
                )
            )

        for day in days:
            day.planned_minutes = sum(task.planned_duration_minutes for task in day.tasks)
            day.overload_minutes = max(0, day.planned_minutes - day.capacity_minutes)
            day.remaining_minutes = max(0, day.capacity_minutes - day.planned_minutes)

        logger.debug(f"Capacity plan for week {start} (user {user_id}): {len(unassigned)} unassigned")
        return WeekCapacityPlan(
            start_date=start,
            end_date=end,
            timezone=timezone_name,
            days=days,
            unassigned_tasks=unassigned,
            unassigned_minutes=sum(task.planned_duration_minutes for task in unassigned),
        )
