"""Repository for ScheduleDay and ScheduleEntry database operations."""

import logging
from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from slotplan.models.schedule import ScheduleDay, ScheduleEntry
from slotplan.database.models import ScheduleDayDB, ScheduleEntryDB

logger = logging.getLogger(__name__)


class ScheduleRepository:
    """Day records and entries, scoped by user."""

    def __init__(self, db: Session):
        self.db = db

    # Day records -------------------------------------------------------------

    def _day_row(self, user_id: str, day: date) -> Optional[ScheduleDayDB]:
        return (
            self.db.query(ScheduleDayDB)
            .filter(ScheduleDayDB.user_id == user_id, ScheduleDayDB.date == day)
            .first()
        )

    def get_day(self, user_id: str, day: date) -> Optional[ScheduleDay]:
        row = self._day_row(user_id, day)
        return row.to_pydantic() if row else None

    def _create_day_row(self, user_id: str, day: date, **fields) -> Tuple[ScheduleDayDB, bool]:
        """Insert a dirty day record.

        When another request inserted the same (user, date) first, the unique
        constraint fires; the row that won is loaded and returned instead.

        Returns:
            (row, created) where created is False if the row already existed
        """
        row = ScheduleDayDB(user_id=user_id, date=day, dirty=True, **fields)
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created schedule day {day} for user {user_id}")
            return row, True
        except IntegrityError:
            self.db.rollback()
            existing = self._day_row(user_id, day)
            if existing is None:
                raise
            logger.debug(f"Schedule day {day} for user {user_id} was created concurrently")
            return existing, False
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create schedule day {day} for user {user_id}: {type(e).__name__}: {str(e)}")
            raise

    def get_or_create_day(
        self,
        user_id: str,
        day: date,
        *,
        timezone: Optional[str],
        cutoff_minute: Optional[int] = None,
    ) -> ScheduleDay:
        """Load the day record, creating it dirty on first access."""
        row = self._day_row(user_id, day)
        if row is None:
            row, _ = self._create_day_row(user_id, day, timezone=timezone, cutoff_minute=cutoff_minute)
        return row.to_pydantic()

    def update_cutoff(self, user_id: str, day: date, *, timezone: str, cutoff_minute: Optional[int]) -> ScheduleDay:
        row = self._day_row(user_id, day)
        if row is None:
            raise ValueError(f"Schedule day {day} not found")
        row.timezone = timezone
        row.cutoff_minute = cutoff_minute
        try:
            self.db.commit()
            self.db.refresh(row)
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update cutoff for {day}: {type(e).__name__}: {str(e)}")
            raise

    def mark_dirty(self, user_id: str, day: date, *, timezone: Optional[str], reason: Optional[str]) -> ScheduleDay:
        """Flag a day stale, creating its record if needed.

        A later reason overwrites an earlier one; marking without a reason keeps
        the existing one.
        """
        row = self._day_row(user_id, day)
        if row is None:
            row, created = self._create_day_row(user_id, day, timezone=timezone, dirty_reason=reason)
            if created:
                logger.debug(f"Marked schedule day {day} dirty for user {user_id} ({reason})")
                return row.to_pydantic()
        try:
            row.dirty = True
            if reason:
                row.dirty_reason = reason
            if timezone:
                row.timezone = timezone
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Marked schedule day {day} dirty for user {user_id} ({reason})")
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to mark schedule day {day} dirty: {type(e).__name__}: {str(e)}")
            raise

    # Entries -----------------------------------------------------------------

    def _entry_query(self):
        return self.db.query(ScheduleEntryDB).options(joinedload(ScheduleEntryDB.task))

    def list_for_day(self, user_id: str, day: date) -> List[ScheduleEntry]:
        rows = (
            self._entry_query()
            .filter(ScheduleEntryDB.user_id == user_id, ScheduleEntryDB.date == day)
            .order_by(ScheduleEntryDB.start_minute, ScheduleEntryDB.end_minute, ScheduleEntryDB.id)
            .all()
        )
        return [row.to_pydantic() for row in rows]

    def list_for_task(
        self,
        user_id: str,
        task_id: str,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[ScheduleEntry]:
        """A task's entries, optionally restricted to an inclusive date range."""
        query = self._entry_query().filter(
            ScheduleEntryDB.user_id == user_id,
            ScheduleEntryDB.task_id == task_id,
        )
        if start is not None:
            query = query.filter(ScheduleEntryDB.date >= start)
        if end is not None:
            query = query.filter(ScheduleEntryDB.date <= end)
        rows = query.order_by(ScheduleEntryDB.date, ScheduleEntryDB.start_minute).all()
        return [row.to_pydantic() for row in rows]

    def get_entry(self, user_id: str, entry_id: str) -> Optional[ScheduleEntry]:
        row = (
            self._entry_query()
            .filter(ScheduleEntryDB.user_id == user_id, ScheduleEntryDB.id == entry_id)
            .first()
        )
        return row.to_pydantic() if row else None

    def create_entry(self, entry: ScheduleEntry) -> ScheduleEntry:
        try:
            row = ScheduleEntryDB.from_pydantic(entry)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created schedule entry {entry.id}")
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create schedule entry {entry.id}: {type(e).__name__}: {str(e)}")
            raise

    def set_flags(
        self,
        user_id: str,
        entry_id: str,
        *,
        pinned: Optional[bool] = None,
        locked: Optional[bool] = None,
    ) -> Optional[ScheduleEntry]:
        """Set pinned and/or locked on an entry (user-scoped); None leaves a flag as is."""
        row = (
            self.db.query(ScheduleEntryDB)
            .filter(ScheduleEntryDB.user_id == user_id, ScheduleEntryDB.id == entry_id)
            .first()
        )
        if row is None:
            return None
        if pinned is not None:
            row.pinned = bool(pinned)
        if locked is not None:
            row.locked = bool(locked)
        try:
            self.db.commit()
            self.db.refresh(row)
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to set flags for entry {entry_id}: {type(e).__name__}: {str(e)}")
            raise

    def delete_for_slot(self, user_id: str, slot_id: str, *, start: date) -> List[date]:
        """Delete a slot's entries dated `start` or later, pinned and locked included.

        Returns:
            Sorted distinct dates that lost entries
        """
        query = self.db.query(ScheduleEntryDB).filter(
            ScheduleEntryDB.user_id == user_id,
            ScheduleEntryDB.slot_id == slot_id,
            ScheduleEntryDB.date >= start,
        )
        dates = sorted({row.date for row in query.all()})
        try:
            deleted_count = query.delete(synchronize_session=False)
            self.db.commit()
            logger.debug(f"Deleted {deleted_count} entries of slot {slot_id} from {start} on")
            return dates
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete entries of slot {slot_id}: {type(e).__name__}: {str(e)}")
            raise

    def replace_day_entries(
        self,
        user_id: str,
        day: date,
        *,
        removable_ids: Iterable[str],
        new_entries: List[ScheduleEntry],
    ) -> Optional[int]:
        """Swap a day's removable entries for freshly planned ones and mark it clean.

        The dirty flip is a conditional update on `dirty = true`, sharing one
        commit with the delete and batch insert. If the day is no longer dirty,
        another replan already committed: nothing is written.

        Returns:
            Number of entries deleted, or None when the day was already clean
        """
        removable_ids = list(removable_ids)
        try:
            claimed = (
                self.db.query(ScheduleDayDB)
                .filter(
                    ScheduleDayDB.user_id == user_id,
                    ScheduleDayDB.date == day,
                    ScheduleDayDB.dirty.is_(True),
                )
                .update({ScheduleDayDB.dirty: False, ScheduleDayDB.dirty_reason: None}, synchronize_session=False)
            )
            if claimed == 0:
                self.db.rollback()
                logger.debug(f"Schedule day {day} for user {user_id} already replanned; discarding result")
                return None

            deleted_count = 0
            if removable_ids:
                deleted_count = (
                    self.db.query(ScheduleEntryDB)
                    .filter(
                        ScheduleEntryDB.user_id == user_id,
                        ScheduleEntryDB.date == day,
                        ScheduleEntryDB.id.in_(removable_ids),
                    )
                    .delete(synchronize_session=False)
                )
            if new_entries:
                self.db.add_all([ScheduleEntryDB.from_pydantic(entry) for entry in new_entries])
            self.db.commit()
            logger.debug(
                f"Replanned {day} for user {user_id}: deleted {deleted_count}, created {len(new_entries)}"
            )
            return int(deleted_count)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to replace entries for {day} (user {user_id}): {type(e).__name__}: {str(e)}")
            raise
