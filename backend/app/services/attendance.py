from __future__ import annotations

from datetime import date, timedelta
import logging
import math

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.attendance_record import AttendanceRecord, AttendanceStatus
from app.models.leave_request import LeaveRequest
from app.models.teacher import Teacher
from app.services.vacancies import leave_dates

logger = logging.getLogger(__name__)

ATTENDANCE_WEIGHTS = {
    AttendanceStatus.present: 1.0,
    AttendanceStatus.half_day: 0.5,
    AttendanceStatus.absent: 0.0,
    AttendanceStatus.leave: 0.0,
}


def recompute_attendance_percentage(
    db: Session,
    teacher: Teacher,
    *,
    window_days: int,
    today: date | None = None,
) -> float | None:
    """Recalculate ``teacher.attendance_percentage`` from the recent active records.

    Returns the new percentage, or ``None`` when the window holds no records, in
    which case the stored value is left alone. The caller commits.
    """
    today = today or date.today()
    window_start = today - timedelta(days=window_days)
    records = list(
        db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.teacher_id == teacher.id,
                AttendanceRecord.is_active.is_(True),
                AttendanceRecord.attendance_date >= window_start,
                AttendanceRecord.attendance_date <= today,
            )
        ).scalars()
    )
    if not records:
        logger.debug("No attendance records for teacher %s since %s", teacher.id, window_start)
        return None

    attended = sum(ATTENDANCE_WEIGHTS.get(record.status, 0.0) for record in records)
    percentage = float(math.floor(attended / len(records) * 100 + 0.5))
    teacher.attendance_percentage = min(100.0, max(0.0, percentage))
    return teacher.attendance_percentage


def record_leave_attendance(db: Session, leave: LeaveRequest) -> int:
    existing = set(
        db.execute(
            select(AttendanceRecord.attendance_date).where(
                AttendanceRecord.teacher_id == leave.teacher_id,
                AttendanceRecord.leave_request_id == leave.id,
            )
        ).scalars()
    )
    created = 0
    for leave_day in leave_dates(leave):
        if leave_day in existing:
            continue
        db.add(
            AttendanceRecord(
                teacher_id=leave.teacher_id,
                attendance_date=leave_day,
                status=AttendanceStatus.leave,
                leave_request_id=leave.id,
                notes=f"Approved {leave.leave_type.value} leave",
            )
        )
        created += 1
    return created


def deactivate_leave_attendance(db: Session, leave: LeaveRequest) -> None:
    for record in db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.leave_request_id == leave.id,
            AttendanceRecord.is_active.is_(True),
        )
    ).scalars():
        record.is_active = False
