"""Pytest fixtures and configuration for slotplan tests."""

import pytest
import uuid
from datetime import date, datetime, timezone
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from slotplan.database.database import Base
from slotplan.database.project_repository import ProjectRepository
from slotplan.database.schedule_repository import ScheduleRepository
from slotplan.database.task_repository import TaskRepository
from slotplan.database.timetable_repository import TimetableRepository
from slotplan.database.user_repository import UserRepository
from slotplan.models.task import Task, TaskStatus
from slotplan.models.user import User


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Monday 2024-01-08, 10:00 UTC (minute 600)
NOW = datetime(2024, 1, 8, 10, 0, tzinfo=timezone.utc)
TUESDAY = date(2024, 1, 9)


@pytest.fixture
def test_user_id():
    """Test user ID for multi-user testing."""
    return "test-user-123"


@pytest.fixture
def other_user_id():
    return "other-user-456"


@pytest.fixture(scope="function")
def db_session(test_user_id, other_user_id):
    """Fresh in-memory database per test, with two seeded users (UTC, Monday first)."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    created = datetime(2024, 1, 1)
    users = UserRepository(session)
    for user_id, email in ((test_user_id, "test@example.com"), (other_user_id, "other@example.com")):
        users.create_or_update(
            User(
                id=user_id,
                email=email,
                name="Test User",
                timezone="UTC",
                first_day_of_week=1,
                created_at=created,
                updated_at=created,
            )
        )

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def now():
    """Fixed evaluation instant: Monday 2024-01-08 10:00 UTC."""
    return NOW


@pytest.fixture
def task_repository(db_session: Session):
    return TaskRepository(db_session)


@pytest.fixture
def schedule_repository(db_session: Session):
    return ScheduleRepository(db_session)


@pytest.fixture
def timetable_repository(db_session: Session):
    return TimetableRepository(db_session)


@pytest.fixture
def project_repository(db_session: Session):
    return ProjectRepository(db_session)


@pytest.fixture
def work_area(project_repository, test_user_id):
    return project_repository.create_area(test_user_id, "Work", area_id="area-work")


@pytest.fixture
def home_area(project_repository, test_user_id):
    return project_repository.create_area(test_user_id, "Home", area_id="area-home")


@pytest.fixture
def work_project(project_repository, test_user_id, work_area):
    return project_repository.create_project(test_user_id, "Alpha", area_id=work_area.id, project_id="project-alpha")


@pytest.fixture
def home_project(project_repository, test_user_id, home_area):
    return project_repository.create_project(test_user_id, "Garden", area_id=home_area.id, project_id="project-garden")


@pytest.fixture
def make_task(task_repository, test_user_id, work_project):
    """Factory persisting a task; defaults to a 30-minute Alpha task due Tuesday at 12:00."""
    counter = {"n": 0}

    def _make(**overrides) -> Task:
        counter["n"] += 1
        fields = {
            "id": str(uuid.uuid4()),
            "user_id": test_user_id,
            "title": f"Task {counter['n']}",
            "status": TaskStatus.NOT_STARTED,
            "created_at": datetime(2024, 1, 1, 9, counter["n"]),
            "updated_at": datetime(2024, 1, 1, 9, counter["n"]),
            "due_date": TUESDAY,
            "due_time_minutes": 720,
            "estimated_duration_minutes": 30,
            "project_id": work_project.id,
        }
        fields.update(overrides)
        return task_repository.create(Task(**fields))

    return _make


@pytest.fixture
def make_slot(timetable_repository, test_user_id, work_area):
    """Factory persisting a slot; defaults to a Work-area slot on Tuesday."""

    def _make(start_minute: int, end_minute: int, **overrides):
        fields = {
            "user_id": test_user_id,
            "weekday": 2,
            "start_minute": start_minute,
            "end_minute": end_minute,
            "area_id": work_area.id,
        }
        fields.update(overrides)
        return timetable_repository.create(**fields)

    return _make


@pytest.fixture
def test_user(test_user_id):
    return User(
        id=test_user_id,
        email="test@example.com",
        name="Test User",
        timezone="UTC",
        first_day_of_week=1,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1),
    )


@pytest.fixture
def test_client(db_session: Session, test_user, now):
    """FastAPI test client with database, authentication and clock overridden."""
    from slotplan.api.app import app, get_evaluation_instant
    from slotplan.database.database import get_db
    from slotplan.auth.dependencies import get_current_user

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # the db_session fixture closes the session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: test_user
    app.dependency_overrides[get_evaluation_instant] = lambda: now

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
