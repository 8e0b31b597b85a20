"""Read-side collaborators of the substitution engine.

The engine only depends on the protocols below. The ``Sql*`` classes are the
SQLAlchemy-backed implementations used by the API; tests may swap in any
object with the same methods.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.models.attendance_record import AttendanceRecord, AttendanceStatus
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.substitution_offer import OPEN_OFFER_STATUSES, SubstitutionOffer, SubstitutionOfferStatus
from app.models.substitution_vacancy import SubstitutionVacancy
from app.models.teacher import Teacher, TeacherRole, TeacherStatus
from app.models.timetable_period import TimetablePeriod

ABSENT_ATTENDANCE_STATUSES = (AttendanceStatus.absent, AttendanceStatus.leave)


@dataclass(frozen=True)
class RegularPeriod:
    day: str
    period_number: int
    subject: str
    class_name: str


@dataclass(frozen=True)
class SubstitutionCommitment:
    day: str
    period_number: int
    vacancy_date: date
    status: SubstitutionOfferStatus


class TeacherDirectory(Protocol):
    def get_active_teachers(self, *, subject: str | None = None) -> list[Teacher]: ...

    def get_teacher(self, teacher_id: str) -> Teacher | None: ...


class ScheduleRepository(Protocol):
    def get_regular_periods(self, teacher_id: str) -> list[RegularPeriod]: ...

    def get_active_substitution_commitments(self, teacher_id: str) -> list[SubstitutionCommitment]: ...


class AttendanceStore(Protocol):
    def get_absence_on_date(self, teacher_id: str, on_date: date) -> bool: ...


class LeaveStore(Protocol):
    def get_leave(self, leave_id: str) -> LeaveRequest | None: ...

    def update_leave(self, leave_id: str, **fields: Any) -> LeaveRequest | None: ...


class SqlTeacherDirectory:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_active_teachers(self, *, subject: str | None = None) -> list[Teacher]:
        query = select(Teacher).where(
            Teacher.role == TeacherRole.teacher,
            Teacher.status == TeacherStatus.active,
        )
        if subject:
            query = query.where(func.lower(Teacher.subject) == subject.strip().lower())
        return list(self._db.execute(query.order_by(Teacher.name, Teacher.id)).scalars())

    def get_teacher(self, teacher_id: str) -> Teacher | None:
        if not teacher_id:
            return None
        return self._db.get(Teacher, teacher_id)

    def get_admins(self) -> list[Teacher]:
        return list(
            self._db.execute(
                select(Teacher).where(
                    Teacher.role == TeacherRole.admin,
                    Teacher.status == TeacherStatus.active,
                )
            ).scalars()
        )


class SqlScheduleRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_regular_periods(self, teacher_id: str) -> list[RegularPeriod]:
        rows = self._db.execute(
            select(TimetablePeriod)
            .where(
                TimetablePeriod.teacher_id == teacher_id,
                TimetablePeriod.is_active.is_(True),
            )
            .order_by(TimetablePeriod.day, TimetablePeriod.period_number)
        ).scalars()
        return [
            RegularPeriod(
                day=row.day,
                period_number=row.period_number,
                subject=row.subject,
                class_name=row.class_name,
            )
            for row in rows
        ]

    def get_active_substitution_commitments(self, teacher_id: str) -> list[SubstitutionCommitment]:
        rows = self._db.execute(
            select(SubstitutionVacancy, SubstitutionOffer.status)
            .join(SubstitutionOffer, SubstitutionOffer.vacancy_id == SubstitutionVacancy.id)
            .where(
                SubstitutionOffer.substitute_teacher_id == teacher_id,
                SubstitutionOffer.status.in_(OPEN_OFFER_STATUSES),
            )
        ).all()
        return [
            SubstitutionCommitment(
                day=vacancy.day,
                period_number=vacancy.period_number,
                vacancy_date=vacancy.vacancy_date,
                status=status,
            )
            for vacancy, status in rows
        ]


class SqlAttendanceStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_absence_on_date(self, teacher_id: str, on_date: date) -> bool:
        recorded = self._db.execute(
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.teacher_id == teacher_id,
                AttendanceRecord.attendance_date == on_date,
                AttendanceRecord.is_active.is_(True),
                AttendanceRecord.status.in_(ABSENT_ATTENDANCE_STATUSES),
            )
        ).scalar_one()
        if recorded:
            return True

        # Approved leave counts even before attendance rows are written for it.
        leaves = self._db.execute(
            select(LeaveRequest).where(
                LeaveRequest.teacher_id == teacher_id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.leave_date <= on_date,
            )
        ).scalars()
        return any(leave.last_date >= on_date for leave in leaves)


class SqlLeaveStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get_leave(self, leave_id: str) -> LeaveRequest | None:
        return self._db.get(LeaveRequest, leave_id)

    def update_leave(self, leave_id: str, **fields: Any) -> LeaveRequest | None:
        # Always emits the UPDATE, even when the loaded row already holds the values.
        self._db.execute(update(LeaveRequest).where(LeaveRequest.id == leave_id).values(**fields))
        return self._db.get(LeaveRequest, leave_id)
