"""Tests for the pure day allocation (no database).

Slots and tasks are built in memory; every test plans Tuesday 2024-01-09.
"""

import pytest
from datetime import date, datetime, timezone

from slotplan.engine.planner import allocate_day, partition_entries, partition_tasks, scheduling_order
from slotplan.models.schedule import ScheduleEntry, UnassignedReason
from slotplan.models.task import Task
from slotplan.models.timetable import TimetableSlot

DAY = date(2024, 1, 9)


def make_slot(slot_id, start, end, *, area="area-work", projects=()):
    return TimetableSlot(
        id=slot_id,
        user_id="u1",
        weekday=2,
        start_minute=start,
        end_minute=end,
        area_id=area,
        project_ids=list(projects),
    )


def make_task(task_id, *, due=720, duration=30, priority=0, area="area-work", project="project-alpha", minute=0, **extra):
    created = datetime(2024, 1, 1, 9, minute)
    fields = {
        "id": task_id,
        "user_id": "u1",
        "title": task_id,
        "created_at": created,
        "updated_at": created,
        "due_date": DAY,
        "due_time_minutes": due,
        "estimated_duration_minutes": duration,
        "priority": priority,
        "project_id": project,
        "area_id": area,
    }
    fields.update(extra)
    return Task(**fields)


def make_entry(entry_id, task_id, slot_id, start, end, **flags):
    return ScheduleEntry(
        id=entry_id,
        user_id="u1",
        date=DAY,
        start_minute=start,
        end_minute=end,
        task_id=task_id,
        slot_id=slot_id,
        **flags,
    )


def plan(slots, tasks, protected=(), cutoff_minute=None, timezone_name="UTC"):
    return allocate_day(
        user_id="u1",
        day=DAY,
        slots=slots,
        protected=list(protected),
        tasks=tasks,
        timezone_name=timezone_name,
        cutoff_minute=cutoff_minute,
    )


def spans(allocation):
    return [(entry.slot_id, entry.start_minute, entry.end_minute) for entry in allocation.entries]


class TestPlacement:
    """Greedy placement into free windows."""

    def test_places_task_at_earliest_free_minute(self):
        """A task lands at the start of the first compatible slot."""
        allocation = plan([make_slot("a", 540, 720)], [make_task("t1")])

        assert spans(allocation) == [("a", 540, 570)]
        assert allocation.unassigned == []

    def test_splits_across_adjacent_slots_without_scattering(self):
        """A 90-minute task fills slot A, then the start of B, never jumping to C."""
        slots = [make_slot("a", 540, 600), make_slot("b", 630, 690), make_slot("c", 900, 960)]
        allocation = plan(slots, [make_task("t1", due=1000, duration=90)])

        assert spans(allocation) == [("a", 540, 600), ("b", 630, 660)]
        assert sum(entry.length_minutes for entry in allocation.entries) == 90

    def test_tasks_share_a_slot_without_overlap(self):
        """Later tasks start where earlier ones ended."""
        tasks = [make_task(f"t{i}", minute=i) for i in range(3)]
        allocation = plan([make_slot("a", 540, 720)], tasks)

        assert spans(allocation) == [("a", 540, 570), ("a", 570, 600), ("a", 600, 630)]

    def test_order_is_due_time_then_priority_then_age(self):
        """Earlier due time wins, then higher priority, then older task."""
        tasks = [
            make_task("late", due=720, minute=1),
            make_task("low", due=660, priority=0, minute=2),
            make_task("high", due=660, priority=5, minute=3),
            make_task("old", due=660, priority=0, minute=0),
        ]
        assert [task.id for task in scheduling_order(tasks)] == ["high", "old", "low", "late"]

        allocation = plan([make_slot("a", 540, 720)], tasks)
        assert [entry.task_id for entry in allocation.entries] == ["high", "old", "low", "late"]

    def test_project_set_slot_accepts_listed_project(self):
        """A slot without an area accepts tasks from its project set only."""
        slot = make_slot("a", 540, 600, area=None, projects=["project-alpha"])
        allocation = plan([slot], [make_task("t1", area=None), make_task("t2", project="project-beta", area=None)])

        assert [entry.task_id for entry in allocation.entries] == ["t1"]
        assert allocation.unassigned[0].task_id == "t2"
        assert allocation.unassigned[0].reason_code == UnassignedReason.NO_MATCHING_SLOT

    def test_cutoff_keeps_new_segments_in_the_future(self):
        """With a cutoff, nothing new starts before it."""
        allocation = plan([make_slot("a", 480, 720)], [make_task("t1")], cutoff_minute=600)

        assert spans(allocation) == [("a", 600, 630)]


class TestRuns:
    """Placement stays inside one run of windows."""

    def test_fragmented_capacity_is_rejected(self):
        """Two 30-minute windows split by an incompatible slot cannot host 50 minutes."""
        slots = [
            make_slot("s1", 540, 570),
            make_slot("other", 570, 600, area="area-home"),
            make_slot("s3", 600, 630),
        ]
        allocation = plan(slots, [make_task("t1", due=660, duration=50)])

        assert allocation.entries == []
        assert len(allocation.unassigned) == 1
        assert allocation.unassigned[0].reason_code == UnassignedReason.SLOT_FRAGMENTATION_TOO_SMALL
        assert allocation.unassigned[0].reason_message == "Available slots are too fragmented to fit the task."

    def test_uses_first_run_large_enough(self):
        """A run too small is skipped for the next run that fits entirely."""
        slots = [
            make_slot("s1", 540, 560),
            make_slot("other", 560, 600, area="area-home"),
            make_slot("s3", 600, 660),
        ]
        allocation = plan(slots, [make_task("t1", due=700, duration=50)])

        assert spans(allocation) == [("s3", 600, 650)]

    def test_not_enough_capacity_before_deadline(self):
        """Total candidate minutes below the requirement."""
        allocation = plan([make_slot("a", 540, 600)], [make_task("t1", duration=90)])

        assert allocation.entries == []
        assert allocation.unassigned[0].reason_code == UnassignedReason.NOT_ENOUGH_CAPACITY_BEFORE_DEADLINE

    def test_capacity_consumed_by_earlier_task(self):
        """A slot filled by an earlier task leaves nothing for the next one."""
        tasks = [make_task("t1", duration=60, minute=0), make_task("t2", duration=30, minute=1)]
        allocation = plan([make_slot("a", 540, 600)], tasks)

        assert [entry.task_id for entry in allocation.entries] == ["t1"]
        assert allocation.unassigned[0].task_id == "t2"
        assert allocation.unassigned[0].reason_code == UnassignedReason.NO_MATCHING_SLOT


class TestRejections:
    """Reason codes for tasks with no candidate window."""

    def test_deadline_before_first_available_slot(self):
        allocation = plan([make_slot("a", 600, 700)], [make_task("t1", due=540)])

        assert allocation.unassigned[0].reason_code == UnassignedReason.DEADLINE_BEFORE_FIRST_AVAILABLE_SLOT

    def test_no_matching_slot(self):
        allocation = plan([make_slot("a", 540, 720, area="area-home")], [make_task("t1")])

        assert allocation.unassigned[0].reason_code == UnassignedReason.NO_MATCHING_SLOT
        assert allocation.unassigned[0].reason_message == "No compatible timetable slot for this task."

    def test_defer_to_later_day_blocks(self):
        """A task deferred past the day is reported, not placed."""
        task = make_task("t1", defer_until=datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc))
        allocation = plan([make_slot("a", 540, 720)], [task])

        assert allocation.entries == []
        assert allocation.unassigned[0].reason_code == UnassignedReason.DEFER_UNTIL_BLOCKS
        assert allocation.unassigned[0].reason_message == "Defer date blocks scheduling on this day."

    def test_defer_after_deadline_blocks(self):
        """Deferred to after the due time on the same day."""
        task = make_task("t1", defer_until=datetime(2024, 1, 9, 13, 0, tzinfo=timezone.utc))
        allocation = plan([make_slot("a", 540, 900)], [task])

        assert allocation.unassigned[0].reason_code == UnassignedReason.DEFER_UNTIL_BLOCKS
        assert allocation.unassigned[0].reason_message == "Defer time is after the task deadline."

    def test_defer_same_day_sets_floor(self):
        """Same-day defer moves the earliest start to the defer minute."""
        task = make_task("t1", defer_until=datetime(2024, 1, 9, 10, 0, tzinfo=timezone.utc))
        allocation = plan([make_slot("a", 540, 720)], [task])

        assert spans(allocation) == [("a", 600, 630)]

    def test_defer_on_earlier_day_is_ignored(self):
        task = make_task("t1", defer_until=datetime(2024, 1, 8, 20, 0, tzinfo=timezone.utc))
        allocation = plan([make_slot("a", 540, 720)], [task])

        assert spans(allocation) == [("a", 540, 570)]

    def test_defer_date_uses_user_timezone(self):
        """23:30 UTC on the 9th is already the 10th in Berlin."""
        task = make_task("t1", defer_until=datetime(2024, 1, 9, 23, 30, tzinfo=timezone.utc))

        utc = plan([make_slot("a", 540, 720)], [task])
        assert utc.unassigned[0].reason_message == "Defer time is after the task deadline."

        berlin = plan([make_slot("a", 540, 720)], [task], timezone_name="Europe/Berlin")
        assert berlin.unassigned[0].reason_code == UnassignedReason.DEFER_UNTIL_BLOCKS
        assert berlin.unassigned[0].reason_message == "Defer date blocks scheduling on this day."


class TestProtectedEntries:
    """Protected entries hold capacity and count toward duration."""

    def test_protected_minutes_reduce_requirement(self):
        """A pinned 20-minute segment leaves 10 minutes to place."""
        pinned = make_entry("e1", "t1", "a", 540, 560, pinned=True)
        allocation = plan([make_slot("a", 540, 720)], [make_task("t1")], protected=[pinned])

        assert spans(allocation) == [("a", 560, 570)]

    def test_fully_covered_task_gets_nothing_new(self):
        locked = make_entry("e1", "t1", "a", 600, 630, locked=True)
        allocation = plan([make_slot("a", 540, 720)], [make_task("t1")], protected=[locked])

        assert allocation.entries == []
        assert allocation.unassigned == []

    def test_other_tasks_route_around_protected_segment(self):
        """Free windows exclude protected minutes."""
        pinned = make_entry("e1", "t1", "a", 540, 570, pinned=True)
        tasks = [make_task("t1", minute=0), make_task("t2", minute=1)]
        allocation = plan([make_slot("a", 540, 720)], tasks, protected=[pinned])

        assert spans(allocation) == [("a", 570, 600)]
        assert allocation.entries[0].task_id == "t2"


class TestPartitions:
    """Entry and task partitioning helpers."""

    def test_partition_entries_with_cutoff(self):
        """Flags or a start before the cutoff protect; a start at the cutoff does not."""
        entries = [
            make_entry("pinned", "t", "a", 700, 730, pinned=True),
            make_entry("locked", "t", "a", 730, 760, locked=True),
            make_entry("started", "t", "a", 540, 570),
            make_entry("at-cutoff", "t", "a", 600, 630),
            make_entry("future", "t", "a", 630, 660),
        ]
        protected, removable = partition_entries(entries, 600)

        assert [entry.id for entry in protected] == ["pinned", "locked", "started"]
        assert [entry.id for entry in removable] == ["at-cutoff", "future"]

    def test_partition_entries_without_cutoff(self):
        entries = [make_entry("plain", "t", "a", 540, 570), make_entry("pinned", "t", "a", 570, 600, pinned=True)]
        protected, removable = partition_entries(entries, None)

        assert [entry.id for entry in protected] == ["pinned"]
        assert [entry.id for entry in removable] == ["plain"]

    def test_partition_tasks(self):
        """Only tasks due that day with full details are eligible."""
        tasks = [
            make_task("ready"),
            make_task("tomorrow", due_date=date(2024, 1, 10)),
            make_task("all-day", due=None),
            make_task("no-estimate", duration=None),
            make_task("undated", due_date=None),
        ]
        eligible, incomplete = partition_tasks(tasks, DAY, include_incomplete=True)

        assert [task.id for task in eligible] == ["ready"]
        assert {item.task_id: item.missing for item in incomplete} == {
            "all-day": ["due_time_minutes"],
            "no-estimate": ["estimated_duration_minutes"],
            "undated": ["due_date"],
        }

    def test_partition_tasks_without_incomplete_list(self):
        eligible, incomplete = partition_tasks([make_task("all-day", due=None)], DAY, include_incomplete=False)

        assert eligible == []
        assert incomplete == []


@pytest.mark.parametrize("duration", [1, 45, 180])
def test_duration_is_conserved(duration):
    """Placed segment lengths add up to the estimate."""
    slots = [make_slot("a", 480, 540), make_slot("b", 540, 600), make_slot("c", 660, 780)]
    allocation = plan(slots, [make_task("t1", due=800, duration=duration)])

    assert sum(entry.length_minutes for entry in allocation.entries) == duration
