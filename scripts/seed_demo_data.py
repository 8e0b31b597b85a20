"""Seed a demo school: one admin, a handful of teachers and their weekly timetables.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py

Prints a bearer token per account so the API can be exercised without a login flow.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select

from app.core.security import create_access_token
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.teacher import Teacher, TeacherRole
from app.models.timetable_period import TimetablePeriod

DEMO_TEACHERS = [
    {"name": "Demo Admin", "email": "admin@coverdesk.local", "role": TeacherRole.admin, "subject": None},
    {"name": "Asha Menon", "email": "asha@coverdesk.local", "role": TeacherRole.teacher, "subject": "Mathematics"},
    {"name": "Bilal Khan", "email": "bilal@coverdesk.local", "role": TeacherRole.teacher, "subject": "Physics"},
    {"name": "Chitra Rao", "email": "chitra@coverdesk.local", "role": TeacherRole.teacher, "subject": "Chemistry"},
    {"name": "Dev Patel", "email": "dev@coverdesk.local", "role": TeacherRole.teacher, "subject": "English"},
    {"name": "Esha Nair", "email": "esha@coverdesk.local", "role": TeacherRole.teacher, "subject": "Statistics"},
]

# (email, day, period_number, class_name)
DEMO_PERIODS = [
    ("asha@coverdesk.local", "monday", 1, "10-A"),
    ("asha@coverdesk.local", "monday", 3, "10-B"),
    ("asha@coverdesk.local", "tuesday", 2, "9-A"),
    ("asha@coverdesk.local", "wednesday", 4, "10-A"),
    ("bilal@coverdesk.local", "monday", 2, "11-A"),
    ("bilal@coverdesk.local", "monday", 3, "11-B"),
    ("bilal@coverdesk.local", "thursday", 1, "12-A"),
    ("chitra@coverdesk.local", "tuesday", 2, "11-A"),
    ("chitra@coverdesk.local", "friday", 5, "12-B"),
    ("dev@coverdesk.local", "monday", 1, "9-B"),
    ("dev@coverdesk.local", "wednesday", 6, "10-C"),
    ("esha@coverdesk.local", "friday", 2, "12-A"),
]


def _upsert_teacher(session, *, name: str, email: str, role: TeacherRole, subject: str | None) -> Teacher:
    teacher = session.execute(select(Teacher).where(Teacher.email == email)).scalar_one_or_none()
    if teacher is None:
        teacher = Teacher(name=name, email=email, role=role, subject=subject, department="Science")
        session.add(teacher)
    else:
        teacher.name = name
        teacher.role = role
        teacher.subject = subject
    session.flush()
    return teacher


def _seed_periods(session, teachers: dict[str, Teacher]) -> int:
    created = 0
    for email, day, period_number, class_name in DEMO_PERIODS:
        teacher = teachers[email]
        exists = session.execute(
            select(TimetablePeriod.id).where(
                TimetablePeriod.teacher_id == teacher.id,
                TimetablePeriod.day == day,
                TimetablePeriod.period_number == period_number,
            )
        ).first()
        if exists:
            continue
        session.add(
            TimetablePeriod(
                teacher_id=teacher.id,
                day=day,
                period_number=period_number,
                subject=teacher.subject or "General",
                class_name=class_name,
            )
        )
        created += 1
    return created


def _print_tokens(items: Iterable[Teacher]) -> None:
    print("\nDemo accounts ready:")
    for teacher in items:
        token = create_access_token(teacher.id, role=teacher.role.value)
        print(f"  - {teacher.name} <{teacher.email}> role={teacher.role.value}")
        print(f"    Authorization: Bearer {token}")


def main() -> None:
    ensure_runtime_schema_compatibility()
    with SessionLocal() as session:
        teachers = {item["email"]: _upsert_teacher(session, **item) for item in DEMO_TEACHERS}
        created = _seed_periods(session, teachers)
        session.commit()
        print(f"Seeded {len(teachers)} teachers and {created} new timetable periods.")
        _print_tokens(teachers.values())


if __name__ == "__main__":
    main()
