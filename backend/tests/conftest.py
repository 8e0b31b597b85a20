import os
import tempfile
from datetime import date
from pathlib import Path

# The app engine is built at import time; point it at a throwaway database first.
_RUNTIME_DB = Path(tempfile.mkdtemp(prefix="coverdesk-tests-")) / "runtime.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{_RUNTIME_DB}")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_app_settings, get_db  # noqa: E402
from app.core.config import Settings  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models.leave_request import LeaveRequest, LeaveStatus, LeaveType  # noqa: E402
from app.models.teacher import Teacher, TeacherRole, TeacherStatus  # noqa: E402
from app.models.timetable_period import TimetablePeriod  # noqa: E402
from app.services.substitution_controller import SubstitutionAssignmentController  # noqa: E402

# 2030-01-07 is a Monday.
MONDAY = date(2030, 1, 7)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    def notify(self, teacher_id, event_type, payload) -> None:
        self.events.append((teacher_id, event_type, payload))

    def of_type(self, event_type: str) -> list[tuple[str, str, dict]]:
        return [item for item in self.events if item[1] == event_type]


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def settings():
    return Settings(auto_dispatch_offers_on_approval=False, offer_expiry_minutes=None)


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def controller(db_session, sink, settings):
    return SubstitutionAssignmentController(db_session, sink=sink, settings=settings)


@pytest.fixture()
def client(session_factory, settings):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_app_settings] = lambda: settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def make_teacher(db_session):
    counter = {"value": 0}

    def _make(
        name: str,
        *,
        subject: str | None = "Mathematics",
        role: TeacherRole = TeacherRole.teacher,
        status: TeacherStatus = TeacherStatus.active,
        available: bool = True,
        attendance_percentage: float | None = 100.0,
    ) -> Teacher:
        counter["value"] += 1
        teacher = Teacher(
            name=name,
            email=f"{name.lower().replace(' ', '.')}.{counter['value']}@school.test",
            role=role,
            subject=subject,
            status=status,
            available=available,
            attendance_percentage=attendance_percentage,
        )
        db_session.add(teacher)
        db_session.commit()
        return teacher

    return _make


@pytest.fixture()
def make_period(db_session):
    def _make(teacher: Teacher, day: str, period_number: int, *, subject: str | None = None, class_name: str = "10-A"):
        period = TimetablePeriod(
            teacher_id=teacher.id,
            day=day,
            period_number=period_number,
            subject=subject or teacher.subject or "General",
            class_name=class_name,
        )
        db_session.add(period)
        db_session.commit()
        return period

    return _make


@pytest.fixture()
def make_leave(db_session):
    def _make(
        teacher: Teacher,
        *,
        leave_date: date = MONDAY,
        end_date: date | None = None,
        status: LeaveStatus = LeaveStatus.approved,
    ) -> LeaveRequest:
        leave = LeaveRequest(
            teacher_id=teacher.id,
            leave_date=leave_date,
            end_date=end_date,
            leave_type=LeaveType.sick,
            reason="Fever and doctor's advice to rest",
            status=status,
        )
        db_session.add(leave)
        db_session.commit()
        return leave

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(teacher: Teacher) -> dict[str, str]:
        token = create_access_token(teacher.id, role=teacher.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers
