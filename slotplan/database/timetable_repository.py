"""Repository for TimetableSlot database operations."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from slotplan.models.timetable import TimetableSlot
from slotplan.database.models import ProjectDB, TimetableSlotDB

logger = logging.getLogger(__name__)
_UNSET = object()


class TimetableRepository:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(TimetableSlotDB).options(selectinload(TimetableSlotDB.projects))

    def _row(self, user_id: str, slot_id: str) -> Optional[TimetableSlotDB]:
        return (
            self._query()
            .filter(TimetableSlotDB.user_id == user_id, TimetableSlotDB.id == slot_id)
            .first()
        )

    def _projects(self, user_id: str, project_ids: List[str]) -> List[ProjectDB]:
        if not project_ids:
            return []
        return (
            self.db.query(ProjectDB)
            .filter(ProjectDB.user_id == user_id, ProjectDB.id.in_(project_ids))
            .all()
        )

    def create(
        self,
        *,
        slot_id: Optional[str] = None,
        user_id: str,
        weekday: int,
        start_minute: int,
        end_minute: int,
        label: Optional[str] = None,
        area_id: Optional[str] = None,
        project_ids: Optional[List[str]] = None,
    ) -> TimetableSlot:
        row = TimetableSlotDB(
            id=slot_id,
            user_id=user_id,
            weekday=weekday,
            start_minute=start_minute,
            end_minute=end_minute,
            label=label,
            area_id=area_id,
        )
        row.projects = self._projects(user_id, project_ids or [])
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Created timetable slot {row.id} (weekday {weekday}, {start_minute}-{end_minute})")
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create timetable slot: {type(e).__name__}: {str(e)}")
            raise

    def get(self, user_id: str, slot_id: str) -> Optional[TimetableSlot]:
        row = self._row(user_id, slot_id)
        return row.to_pydantic() if row else None

    def list_for_user(self, user_id: str, *, weekday: Optional[int] = None) -> List[TimetableSlot]:
        """Slots ordered by weekday, then start minute."""
        query = self._query().filter(TimetableSlotDB.user_id == user_id)
        if weekday is not None:
            query = query.filter(TimetableSlotDB.weekday == weekday)
        rows = query.order_by(
            TimetableSlotDB.weekday, TimetableSlotDB.start_minute, TimetableSlotDB.end_minute
        ).all()
        return [row.to_pydantic() for row in rows]

    def list_for_weekday(self, user_id: str, weekday: int) -> List[TimetableSlot]:
        """One weekday's slots, with their capability filters, by start minute."""
        return self.list_for_user(user_id, weekday=weekday)

    def minutes_by_weekday(self, user_id: str) -> Dict[int, int]:
        """Total slot minutes per weekday."""
        totals: Dict[int, int] = {}
        for slot in self.list_for_user(user_id):
            totals[slot.weekday] = totals.get(slot.weekday, 0) + slot.length_minutes
        return totals

    def update(
        self,
        user_id: str,
        slot_id: str,
        *,
        weekday=_UNSET,
        start_minute=_UNSET,
        end_minute=_UNSET,
        label=_UNSET,
        area_id=_UNSET,
        project_ids=_UNSET,
    ) -> Optional[TimetableSlot]:
        """Partially update a slot.

        Uses an UNSET sentinel so callers can explicitly clear values by passing None.
        """
        row = self._row(user_id, slot_id)
        if row is None:
            return None
        if weekday is not _UNSET:
            row.weekday = weekday
        if start_minute is not _UNSET:
            row.start_minute = start_minute
        if end_minute is not _UNSET:
            row.end_minute = end_minute
        if label is not _UNSET:
            row.label = label
        if area_id is not _UNSET:
            row.area_id = area_id
        if project_ids is not _UNSET:
            row.projects = self._projects(user_id, project_ids or [])
        try:
            self.db.commit()
            self.db.refresh(row)
            logger.debug(f"Updated timetable slot {slot_id}")
            return row.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update timetable slot {slot_id}: {type(e).__name__}: {str(e)}")
            raise

    def delete(self, user_id: str, slot_id: str) -> bool:
        row = self._row(user_id, slot_id)
        if row is None:
            return False
        try:
            self.db.delete(row)
            self.db.commit()
            logger.debug(f"Deleted timetable slot {slot_id}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete timetable slot {slot_id}: {type(e).__name__}: {str(e)}")
            raise
