from datetime import date, timedelta

from sqlalchemy import select

from app.models.attendance_record import AttendanceRecord, AttendanceStatus
from app.services.attendance import record_leave_attendance, recompute_attendance_percentage

TODAY = date(2030, 3, 1)


def _record(db, teacher, days_ago, status, *, is_active=True):
    db.add(
        AttendanceRecord(
            teacher_id=teacher.id,
            attendance_date=TODAY - timedelta(days=days_ago),
            status=status,
            is_active=is_active,
        )
    )


def test_recompute_uses_only_the_recent_window(db_session, make_teacher):
    teacher = make_teacher("Teacher", attendance_percentage=40.0)
    _record(db_session, teacher, 1, AttendanceStatus.present)
    _record(db_session, teacher, 2, AttendanceStatus.half_day)
    _record(db_session, teacher, 3, AttendanceStatus.absent, is_active=False)
    _record(db_session, teacher, 45, AttendanceStatus.absent)
    db_session.commit()

    percentage = recompute_attendance_percentage(db_session, teacher, window_days=30, today=TODAY)

    assert percentage == 75.0
    assert teacher.attendance_percentage == 75.0


def test_recompute_without_records_keeps_previous_value(db_session, make_teacher):
    teacher = make_teacher("Teacher", attendance_percentage=88.0)

    assert recompute_attendance_percentage(db_session, teacher, window_days=30, today=TODAY) is None
    assert teacher.attendance_percentage == 88.0


def test_leave_attendance_rows_are_written_once(db_session, make_teacher, make_leave):
    teacher = make_teacher("Teacher")
    leave = make_leave(teacher, leave_date=date(2030, 1, 7), end_date=date(2030, 1, 9))

    assert record_leave_attendance(db_session, leave) == 3
    db_session.commit()
    assert record_leave_attendance(db_session, leave) == 0

    statuses = set(db_session.execute(select(AttendanceRecord.status)).scalars())
    assert statuses == {AttendanceStatus.leave}
