"""Tests for DirtyDayTracker.

Horizon for the fixed instant (Monday 2024-01-08 10:00 UTC, Monday-first
weeks) is 2024-01-08 through 2024-01-14.
"""

import pytest
import uuid
from datetime import date

from slotplan.engine.dirty import DirtyDayTracker
from slotplan.models.schedule import DirtyReason, ScheduleEntry

MONDAY = date(2024, 1, 8)
TUESDAY = date(2024, 1, 9)
WEDNESDAY = date(2024, 1, 10)
NEXT_MONDAY = date(2024, 1, 15)


@pytest.fixture
def tracker(db_session):
    return DirtyDayTracker(db_session)


def _reason(schedule_repository, user_id, day):
    record = schedule_repository.get_day(user_id, day)
    return record.dirty_reason if record and record.dirty else None


def _entry(schedule_repository, user_id, day, task, slot, start, end):
    return schedule_repository.create_entry(
        ScheduleEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            date=day,
            start_minute=start,
            end_minute=end,
            task_id=task.id,
            slot_id=slot.id,
        )
    )


class TestTaskCreated:
    """on_task_created()"""

    def test_marks_due_date_in_horizon(self, tracker, make_task, schedule_repository, test_user_id, now):
        task = make_task(due_date=WEDNESDAY)

        assert tracker.on_task_created(task, now=now) == [WEDNESDAY]
        assert _reason(schedule_repository, test_user_id, WEDNESDAY) == "task_created"

    def test_ignores_due_date_outside_horizon(self, tracker, make_task, schedule_repository, test_user_id, now):
        task = make_task(due_date=NEXT_MONDAY)

        assert tracker.on_task_created(task, now=now) == []
        assert schedule_repository.get_day(test_user_id, NEXT_MONDAY) is None

    def test_ignores_unschedulable_task(self, tracker, make_task, now):
        """Without a due time the task never reaches a slot."""
        assert tracker.on_task_created(make_task(due_time_minutes=None), now=now) == []

    def test_marks_previously_clean_day(self, tracker, make_task, schedule_repository, test_user_id, now):
        schedule_repository.get_or_create_day(test_user_id, TUESDAY, timezone="UTC")
        schedule_repository.replace_day_entries(test_user_id, TUESDAY, removable_ids=[], new_entries=[])
        assert schedule_repository.get_day(test_user_id, TUESDAY).dirty is False

        tracker.on_task_created(make_task(), now=now)

        assert _reason(schedule_repository, test_user_id, TUESDAY) == "task_created"


class TestTaskUpdated:
    """on_task_updated()"""

    def test_due_date_move_marks_old_and_new(self, tracker, make_task, schedule_repository, test_user_id, now):
        old = make_task(due_date=TUESDAY)
        new = old.model_copy(update={"due_date": WEDNESDAY})

        assert tracker.on_task_updated(old, new, now=now) == [TUESDAY, WEDNESDAY]
        assert _reason(schedule_repository, test_user_id, TUESDAY) == "due_date_changed"
        assert _reason(schedule_repository, test_user_id, WEDNESDAY) == "due_date_changed"

    def test_due_date_moved_out_of_horizon_marks_old_only(self, tracker, make_task, now):
        old = make_task(due_date=TUESDAY)
        new = old.model_copy(update={"due_date": NEXT_MONDAY})

        assert tracker.on_task_updated(old, new, now=now) == [TUESDAY]

    @pytest.mark.parametrize(
        "change",
        [
            {"due_time_minutes": 900},
            {"estimated_duration_minutes": 90},
            {"project_id": None},
        ],
    )
    def test_placement_fields_mark_due_date(self, tracker, make_task, schedule_repository, test_user_id, now, change):
        old = make_task()
        new = old.model_copy(update=change)

        assert tracker.on_task_updated(old, new, now=now) == [TUESDAY]
        assert _reason(schedule_repository, test_user_id, TUESDAY) == "task_updated"

    def test_unrelated_change_marks_nothing(self, tracker, make_task, now):
        old = make_task()
        new = old.model_copy(update={"title": "Renamed", "priority": 3})

        assert tracker.on_task_updated(old, new, now=now) == []


class TestTaskCompleted:
    """on_task_completed()"""

    def test_marks_future_entry_dates(self, tracker, make_task, make_slot, schedule_repository, test_user_id, now):
        task = make_task(due_date=WEDNESDAY)
        slot = make_slot(540, 720, weekday=3)
        _entry(schedule_repository, test_user_id, WEDNESDAY, task, slot, 540, 570)

        assert tracker.on_task_completed(task, now=now) == [WEDNESDAY]
        assert _reason(schedule_repository, test_user_id, WEDNESDAY) == "task_completed"

    def test_finished_segment_today_does_not_mark(self, tracker, make_task, make_slot, schedule_repository, test_user_id, now):
        """A segment of today that already ended before now is history."""
        task = make_task(due_date=MONDAY)
        slot = make_slot(480, 720, weekday=1)
        _entry(schedule_repository, test_user_id, MONDAY, task, slot, 540, 570)

        assert tracker.on_task_completed(task, now=now) == []
        assert schedule_repository.get_day(test_user_id, MONDAY) is None

    def test_upcoming_segment_today_marks(self, tracker, make_task, make_slot, schedule_repository, test_user_id, now):
        task = make_task(due_date=MONDAY)
        slot = make_slot(480, 720, weekday=1)
        _entry(schedule_repository, test_user_id, MONDAY, task, slot, 660, 690)

        assert tracker.on_task_completed(task, now=now) == [MONDAY]

    def test_each_date_marked_once(self, tracker, make_task, make_slot, schedule_repository, test_user_id, now):
        task = make_task(due_date=WEDNESDAY, estimated_duration_minutes=90)
        slot = make_slot(540, 720, weekday=3)
        _entry(schedule_repository, test_user_id, WEDNESDAY, task, slot, 540, 570)
        _entry(schedule_repository, test_user_id, WEDNESDAY, task, slot, 600, 660)

        assert tracker.on_task_completed(task, now=now) == [WEDNESDAY]


class TestFlagsAndTimetable:
    """Entry flag and timetable hooks."""

    def test_flag_change_marks_entry_date(self, tracker, make_task, make_slot, schedule_repository, test_user_id, now):
        task = make_task()
        entry = _entry(schedule_repository, test_user_id, TUESDAY, task, make_slot(540, 720), 540, 570)

        assert tracker.on_schedule_entry_flag_changed(entry, DirtyReason.LOCK_CHANGED, now=now) == TUESDAY
        assert _reason(schedule_repository, test_user_id, TUESDAY) == "lock_changed"

    def test_timetable_change_marks_matching_weekdays_in_horizon(self, tracker, schedule_repository, test_user_id, now):
        """Tuesday and Sunday of the current week."""
        marked = tracker.on_timetable_changed(test_user_id, [2, 0], now=now)

        assert marked == [TUESDAY, date(2024, 1, 14)]
        assert _reason(schedule_repository, test_user_id, TUESDAY) == "timetable_changed"

    def test_horizon_follows_user_first_day_of_week(self, tracker, db_session, test_user_id, now):
        """With Sunday-first weeks, Monday's week ends on Saturday."""
        from slotplan.database.models import UserDB

        db_session.query(UserDB).filter(UserDB.id == test_user_id).update({"first_day_of_week": 0})
        db_session.commit()

        assert tracker.on_timetable_changed(test_user_id, [0], now=now) == []
