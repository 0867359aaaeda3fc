"""Assembly of day views from slots and entries."""

from datetime import date
from typing import Dict, List, Optional, Sequence

from slotplan.engine.clock import weekday_index
from slotplan.models.schedule import (
    DayView,
    IncompleteTask,
    PauseItem,
    ScheduleEntry,
    Segment,
    SlotItem,
    UnassignedTask,
)
from slotplan.models.timetable import TimetableSlot


def derive_pauses(slots: Sequence[TimetableSlot]) -> List[PauseItem]:
    """Gaps between consecutive slots (slots ordered by start minute)."""
    pauses: List[PauseItem] = []
    for current, following in zip(slots, slots[1:]):
        if following.start_minute > current.end_minute:
            pauses.append(PauseItem(start_minute=current.end_minute, end_minute=following.start_minute))
    return pauses


def build_slot_items(slots: Sequence[TimetableSlot], entries: Sequence[ScheduleEntry]) -> List[SlotItem]:
    by_slot: Dict[str, List[ScheduleEntry]] = {}
    for entry in entries:
        by_slot.setdefault(entry.slot_id, []).append(entry)

    items: List[SlotItem] = []
    for slot in slots:
        slot_entries = by_slot.get(slot.id, [])
        items.append(
            SlotItem(
                slot=slot,
                capacity_minutes=slot.length_minutes,
                used_minutes=sum(entry.length_minutes for entry in slot_entries),
                segments=[
                    Segment(
                        entry_id=entry.id,
                        task_id=entry.task_id,
                        task_title=entry.task_title,
                        pinned=entry.pinned,
                        locked=entry.locked,
                        start_minute=entry.start_minute,
                        end_minute=entry.end_minute,
                        slot_id=entry.slot_id,
                    )
                    for entry in slot_entries
                ],
            )
        )
    return items


def build_day_view(
    day: date,
    *,
    cutoff_minute: Optional[int],
    slots: Sequence[TimetableSlot],
    entries: Sequence[ScheduleEntry],
    unassigned: Optional[List[UnassignedTask]] = None,
    incomplete: Optional[List[IncompleteTask]] = None,
) -> DayView:
    """Merge slot items and pauses into one time-ordered item list."""
    slot_items = build_slot_items(slots, entries)
    pauses = derive_pauses(slots)

    items = []
    slot_index = 0
    pause_index = 0
    while slot_index < len(slot_items) or pause_index < len(pauses):
        if pause_index >= len(pauses):
            items.append(slot_items[slot_index])
            slot_index += 1
        elif slot_index >= len(slot_items):
            items.append(pauses[pause_index])
            pause_index += 1
        elif slot_items[slot_index].slot.start_minute < pauses[pause_index].start_minute:
            items.append(slot_items[slot_index])
            slot_index += 1
        else:
            items.append(pauses[pause_index])
            pause_index += 1

    return DayView(
        date=day,
        weekday=weekday_index(day),
        cutoff_minute=cutoff_minute,
        items=items,
        unassignedEligible=unassigned or [],
        incompleteForScheduling=incomplete or [],
    )
