"""FastAPI web application for slotplan."""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from slotplan.api.request_models import (
    EntryFlagsRequest,
    SlotCreateRequest,
    SlotUpdateRequest,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from slotplan.auth.dependencies import get_current_user
from slotplan.database.database import get_db
from slotplan.database.user_repository import UserRepository
from slotplan.engine.capacity import CapacityPlanner
from slotplan.engine.errors import NotFoundError, StorageContentionError, ValidationError
from slotplan.engine.service import ScheduleService
from slotplan.engine.tasks import TaskService
from slotplan.engine.timetable import TimetableService
from slotplan.models.planning import WeekCapacityPlan
from slotplan.models.schedule import DayView, WeekView
from slotplan.models.task import Task
from slotplan.models.timetable import TimetableSlot
from slotplan.models.user import User

logger = logging.getLogger(__name__)

app = FastAPI(
    title="slotplan API",
    description="Places tasks into weekly timetable slots, day by day",
    version="0.1.0",
)


def get_evaluation_instant() -> datetime:
    """The instant a request is evaluated at (UTC)."""
    return datetime.now(timezone.utc)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(StorageContentionError)
async def contention_error_handler(request: Request, exc: StorageContentionError):
    logger.error(f"Request {request.url.path} failed after retries: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage is busy, please retry."},
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


# Schedule --------------------------------------------------------------------


@app.get("/schedule/week", response_model=WeekView)
def get_schedule_week(
    start: Optional[date] = Query(None, description="Any date inside the wanted week"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    """Week view, replanning dirty days on the way."""
    return ScheduleService(db).get_week(current_user.id, start_date=start, now=now)


@app.get("/schedule/day", response_model=DayView)
def get_schedule_day(
    day: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    """Day view for `date` (default: today in the user's timezone)."""
    return ScheduleService(db).get_day(current_user.id, day, now=now)


@app.patch("/schedule/entries/{entry_id}", response_model=DayView)
def update_schedule_entry(
    entry_id: str,
    request: EntryFlagsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    """Pin/lock an entry and return its replanned day."""
    return ScheduleService(db).update_entry_flags(
        current_user.id,
        entry_id,
        pinned=request.pinned,
        locked=request.locked,
        now=now,
    )


# Timetable -------------------------------------------------------------------


@app.get("/timetable/slots", response_model=List[TimetableSlot])
def list_timetable_slots(
    weekday: Optional[int] = Query(None, ge=0, le=6),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return TimetableService(db).list(current_user.id, weekday=weekday)


@app.post("/timetable/slots", response_model=TimetableSlot, status_code=status.HTTP_201_CREATED)
def create_timetable_slot(
    request: SlotCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    return TimetableService(db).create(current_user.id, request.model_dump(), now=now)


@app.patch("/timetable/slots/{slot_id}", response_model=TimetableSlot)
def update_timetable_slot(
    slot_id: str,
    request: SlotUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    return TimetableService(db).update(current_user.id, slot_id, request.model_dump(exclude_unset=True), now=now)


@app.delete("/timetable/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_timetable_slot(
    slot_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    TimetableService(db).delete(current_user.id, slot_id, now=now)


# Tasks -----------------------------------------------------------------------


@app.post("/tasks", response_model=Task, status_code=status.HTTP_201_CREATED)
def create_task(
    request: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    return TaskService(db).create(current_user.id, request.model_dump(), now=now)


@app.patch("/tasks/{task_id}", response_model=Task)
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    return TaskService(db).update(current_user.id, task_id, request.model_dump(exclude_unset=True), now=now)


# Planning --------------------------------------------------------------------


@app.get("/planning/week", response_model=WeekCapacityPlan)
def get_week_capacity_plan(
    start: Optional[date] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_evaluation_instant),
):
    """Capacity versus planned minutes for the Monday-based week containing `start`."""
    profile = UserRepository(db).get_profile(current_user.id)
    return CapacityPlanner(db).week_plan(current_user.id, start_date=start, timezone_name=profile.timezone, now=now)
