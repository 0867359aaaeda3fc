"""Day planner: turns a dirty (user, date) into concrete schedule entries.

The allocation itself (`allocate_day`) is a pure function over slots,
protected entries and tasks. `DayPlanner` wraps it with storage: it loads the
day, decides whether a replan is needed, persists the result in one commit,
and retries the whole sequence on storage contention.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from slotplan.database.schedule_repository import ScheduleRepository
from slotplan.database.task_repository import TaskRepository
from slotplan.database.timetable_repository import TimetableRepository
from slotplan.engine.clock import (
    local_today,
    minute_of_day,
    safe_timezone_name,
    to_local,
    weekday_index,
)
from slotplan.engine.retry import with_contention_retry
from slotplan.engine.views import build_day_view
from slotplan.engine.windows import Window, clip_from, intersect, subtract_interval, total_minutes
from slotplan.models.schedule import (
    DayView,
    IncompleteTask,
    ScheduleEntry,
    TaskSummary,
    UnassignedReason,
    UnassignedTask,
    reason_message,
)
from slotplan.models.task import Task
from slotplan.models.timetable import TimetableSlot

logger = logging.getLogger(__name__)

SlotWindows = Dict[str, List[Window]]


@dataclass
class DeferInfo:
    """How a task's defer-until affects the target date."""
    blocked: bool = False
    floor_minute: Optional[int] = None


@dataclass
class Candidate:
    slot: TimetableSlot
    window: Window


@dataclass
class Allocation:
    """Result of planning one day."""
    entries: List[ScheduleEntry] = field(default_factory=list)
    unassigned: List[UnassignedTask] = field(default_factory=list)
    windows: SlotWindows = field(default_factory=dict)


def partition_entries(
    entries: Sequence[ScheduleEntry], cutoff_minute: Optional[int]
) -> Tuple[List[ScheduleEntry], List[ScheduleEntry]]:
    """Split a day's entries into (protected, removable).

    Pinned and locked entries are always protected. With a cutoff (today),
    entries that started before it are protected too.
    """
    protected: List[ScheduleEntry] = []
    removable: List[ScheduleEntry] = []
    for entry in entries:
        started = cutoff_minute is not None and entry.start_minute < cutoff_minute
        if entry.is_flagged or started:
            protected.append(entry)
        else:
            removable.append(entry)
    return protected, removable


def missing_fields(task: Task) -> List[str]:
    missing = []
    if task.due_date is None:
        missing.append("due_date")
    if task.due_time_minutes is None:
        missing.append("due_time_minutes")
    if task.estimated_duration_minutes is None:
        missing.append("estimated_duration_minutes")
    return missing


def partition_tasks(
    tasks: Sequence[Task], day: date, *, include_incomplete: bool
) -> Tuple[List[Task], List[IncompleteTask]]:
    """Pick the tasks due on `day` that can be placed.

    Tasks due that day but lacking a due time or duration (and, with
    `include_incomplete`, tasks lacking a due date) are reported as incomplete.
    """
    eligible: List[Task] = []
    incomplete: List[IncompleteTask] = []
    for task in tasks:
        if task.due_date is not None and task.due_date != day:
            continue
        missing = missing_fields(task)
        if missing:
            if include_incomplete:
                incomplete.append(IncompleteTask(**TaskSummary.from_task(task).model_dump(), missing=missing))
            continue
        eligible.append(task)
    return eligible, incomplete


def scheduling_order(tasks: Sequence[Task]) -> List[Task]:
    """Due time ascending, then priority descending, then oldest first."""
    return sorted(
        tasks,
        key=lambda task: (task.due_time_minutes, -(task.priority or 0), task.created_at),
    )


def defer_info(task: Task, day: date, timezone_name: str) -> DeferInfo:
    if task.defer_until is None:
        return DeferInfo()
    local = to_local(task.defer_until, timezone_name)
    if local.date() > day:
        return DeferInfo(blocked=True)
    if local.date() < day:
        return DeferInfo()
    return DeferInfo(floor_minute=minute_of_day(local))


def initial_windows(
    slots: Sequence[TimetableSlot],
    protected: Sequence[ScheduleEntry],
    cutoff_minute: Optional[int],
) -> SlotWindows:
    """Free windows per slot once protected entries and the cutoff are applied."""
    windows: SlotWindows = {slot.id: [Window(slot.start_minute, slot.end_minute)] for slot in slots}
    for entry in protected:
        if entry.slot_id in windows:
            windows[entry.slot_id] = subtract_interval(windows[entry.slot_id], entry.start_minute, entry.end_minute)
    if cutoff_minute is not None:
        windows = {slot_id: clip_from(free, cutoff_minute) for slot_id, free in windows.items()}
    return windows


def _candidates(
    task: Task,
    slots: Sequence[TimetableSlot],
    windows: SlotWindows,
    floor_minute: Optional[int],
) -> List[Candidate]:
    lower = floor_minute if floor_minute is not None else 0
    found: List[Candidate] = []
    for slot in slots:
        if not slot.accepts(task):
            continue
        for free in windows.get(slot.id, []):
            for part in intersect(free, lower, task.due_time_minutes):
                found.append(Candidate(slot=slot, window=part))
    found.sort(key=lambda candidate: (candidate.window.start, candidate.window.end))
    return found


def _runs(candidates: List[Candidate], blockers: Sequence[TimetableSlot]) -> List[List[Candidate]]:
    """Group candidates into runs not separated by a slot the task may not use."""
    runs: List[List[Candidate]] = []
    for candidate in candidates:
        if runs:
            previous = runs[-1][-1].window
            separated = any(
                blocker.start_minute < candidate.window.start and blocker.end_minute > previous.end
                for blocker in blockers
            )
            if not separated:
                runs[-1].append(candidate)
                continue
        runs.append([candidate])
    return runs


def _rejection(task: Task, reason: UnassignedReason, *, deferred_to_later_day: bool = False) -> UnassignedTask:
    return UnassignedTask(
        **TaskSummary.from_task(task).model_dump(),
        reason_code=reason,
        reason_message=reason_message(reason, deferred_to_later_day=deferred_to_later_day),
    )


def place_task(
    task: Task,
    *,
    user_id: str,
    day: date,
    slots: Sequence[TimetableSlot],
    windows: SlotWindows,
    required_minutes: int,
    defer: DeferInfo,
) -> Tuple[SlotWindows, List[ScheduleEntry], Optional[UnassignedTask]]:
    """Place one task into the earliest run of candidate windows that holds it.

    Args:
        task: Task eligible for `day`
        user_id: Owner of the new entries
        day: Date being planned
        slots: The day's timetable slots
        windows: Free windows per slot id
        required_minutes: Minutes still to place after protected entries
        defer: Resolved defer-until floor for `day`

    Returns:
        (updated windows, new entries, rejection). On rejection no entries
        are returned and `windows` comes back unchanged.
    """
    due_time = task.due_time_minutes
    candidates = _candidates(task, slots, windows, defer.floor_minute)

    if not candidates:
        compatible_starts = [slot.start_minute for slot in slots if slot.accepts(task)]
        if defer.floor_minute is not None and defer.floor_minute >= due_time:
            reason = UnassignedReason.DEFER_UNTIL_BLOCKS
        elif compatible_starts and min(compatible_starts) >= due_time:
            reason = UnassignedReason.DEADLINE_BEFORE_FIRST_AVAILABLE_SLOT
        else:
            reason = UnassignedReason.NO_MATCHING_SLOT
        return windows, [], _rejection(task, reason)

    if total_minutes([candidate.window for candidate in candidates]) < required_minutes:
        return windows, [], _rejection(task, UnassignedReason.NOT_ENOUGH_CAPACITY_BEFORE_DEADLINE)

    blockers = [slot for slot in slots if not slot.accepts(task)]
    run = next(
        (
            run
            for run in _runs(candidates, blockers)
            if total_minutes([candidate.window for candidate in run]) >= required_minutes
        ),
        None,
    )
    if run is None:
        return windows, [], _rejection(task, UnassignedReason.SLOT_FRAGMENTATION_TOO_SMALL)

    updated = dict(windows)
    entries: List[ScheduleEntry] = []
    remaining = required_minutes
    for candidate in run:
        if remaining <= 0:
            break
        allocation = min(remaining, candidate.window.length)
        segment_end = candidate.window.start + allocation
        entries.append(
            ScheduleEntry(
                id=str(uuid.uuid4()),
                user_id=user_id,
                date=day,
                start_minute=candidate.window.start,
                end_minute=segment_end,
                task_id=task.id,
                slot_id=candidate.slot.id,
                task_title=task.title,
            )
        )
        updated[candidate.slot.id] = subtract_interval(updated[candidate.slot.id], candidate.window.start, segment_end)
        remaining -= allocation

    return updated, entries, None


def allocate_day(
    *,
    user_id: str,
    day: date,
    slots: Sequence[TimetableSlot],
    protected: Sequence[ScheduleEntry],
    tasks: Sequence[Task],
    timezone_name: str,
    cutoff_minute: Optional[int] = None,
) -> Allocation:
    """Greedily place eligible tasks into the day's free slot windows.

    `tasks` must already be filtered to the tasks eligible for `day`. Minutes
    already held by protected entries count toward each task's duration.

    Args:
        user_id: Owner of the new entries
        day: Date being planned
        slots: The day's timetable slots
        protected: Entries that stay in place
        tasks: Eligible tasks, in any order
        timezone_name: IANA zone used to resolve defer-until instants
        cutoff_minute: Current minute of day when `day` is today, else None

    Returns:
        Allocation with the new entries, the rejections and the remaining windows
    """
    windows = initial_windows(slots, protected, cutoff_minute)

    reserved: Dict[str, int] = {}
    for entry in protected:
        reserved[entry.task_id] = reserved.get(entry.task_id, 0) + entry.length_minutes

    allocation = Allocation()
    for task in scheduling_order(tasks):
        required = max(0, task.estimated_duration_minutes - reserved.get(task.id, 0))
        defer = defer_info(task, day, timezone_name)
        if defer.blocked:
            allocation.unassigned.append(
                _rejection(task, UnassignedReason.DEFER_UNTIL_BLOCKS, deferred_to_later_day=True)
            )
            continue
        if required == 0:
            continue

        windows, entries, rejection = place_task(
            task,
            user_id=user_id,
            day=day,
            slots=slots,
            windows=windows,
            required_minutes=required,
            defer=defer,
        )
        allocation.entries.extend(entries)
        if rejection is not None:
            allocation.unassigned.append(rejection)

    allocation.windows = windows
    return allocation


class DayPlanner:
    """Plans single days against storage."""

    def __init__(
        self,
        db: Session,
        *,
        retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.schedule = ScheduleRepository(db)
        self.timetable = TimetableRepository(db)
        self.tasks = TaskRepository(db)
        self.retries = retries
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep

    def plan_day(self, user_id: str, day: date, *, timezone_name: Optional[str], now: datetime) -> DayView:
        """Return the day view for `day`, replanning first if the day is dirty.

        Past days are served as stored. The whole replan is retried on storage
        contention, rolling the session back between attempts.

        Args:
            user_id: Owner of the schedule
            day: Date to plan
            timezone_name: User timezone (unknown names fall back to UTC)
            now: Evaluation instant

        Returns:
            DayView for `day`

        Raises:
            StorageContentionError: Contention outlasted the retry budget
        """
        timezone_name = safe_timezone_name(timezone_name)

        def attempt() -> DayView:
            try:
                return self._plan_day_once(user_id, day, timezone_name=timezone_name, now=now)
            except Exception:
                self.db.rollback()
                raise

        return with_contention_retry(
            attempt,
            retries=self.retries,
            delay_seconds=self.retry_delay_seconds,
            sleep=self.sleep,
        )

    def _plan_day_once(self, user_id: str, day: date, *, timezone_name: str, now: datetime) -> DayView:
        today = local_today(now, timezone_name)
        is_today = day == today
        cutoff_minute = minute_of_day(to_local(now, timezone_name)) if is_today else None

        record = self.schedule.get_or_create_day(
            user_id, day, timezone=timezone_name, cutoff_minute=cutoff_minute
        )
        if is_today:
            record = self.schedule.update_cutoff(
                user_id, day, timezone=timezone_name, cutoff_minute=cutoff_minute
            )

        slots = self.timetable.list_for_weekday(user_id, weekday_index(day))
        entries = self.schedule.list_for_day(user_id, day)

        if day < today or not record.dirty:
            logger.debug(f"Serving stored schedule for {day} (user {user_id})")
            return build_day_view(day, cutoff_minute=record.cutoff_minute, slots=slots, entries=entries)

        protected, removable = partition_entries(entries, cutoff_minute)
        eligible, incomplete = partition_tasks(
            self.tasks.get_schedulable(user_id), day, include_incomplete=is_today
        )
        allocation = allocate_day(
            user_id=user_id,
            day=day,
            slots=slots,
            protected=protected,
            tasks=eligible,
            timezone_name=timezone_name,
            cutoff_minute=cutoff_minute,
        )

        deleted = self.schedule.replace_day_entries(
            user_id,
            day,
            removable_ids=[entry.id for entry in removable],
            new_entries=allocation.entries,
        )
        if deleted is None:
            logger.info(f"{day} for user {user_id} was replanned by a concurrent request; serving its result")
            return build_day_view(
                day,
                cutoff_minute=record.cutoff_minute,
                slots=slots,
                entries=self.schedule.list_for_day(user_id, day),
                incomplete=incomplete,
            )
        logger.info(
            f"Replanned {day} for user {user_id} ({record.dirty_reason or 'initial'}): "
            f"{len(allocation.entries)} segments, {len(allocation.unassigned)} unassigned"
        )

        return build_day_view(
            day,
            cutoff_minute=record.cutoff_minute,
            slots=slots,
            entries=self.schedule.list_for_day(user_id, day),
            unassigned=allocation.unassigned,
            incomplete=incomplete,
        )
