from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING

from app.core.exceptions import InvalidVacancyError
from app.models.leave_request import LeaveRequest
from app.models.timetable_period import WEEK_DAYS

if TYPE_CHECKING:
    from app.services.repositories import ScheduleRepository

DAY_ALIASES = {
    "mon": "monday",
    "tue": "tuesday",
    "tues": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "thur": "thursday",
    "thurs": "thursday",
    "fri": "friday",
    "sat": "saturday",
    "sun": "sunday",
}


@dataclass(frozen=True)
class Vacancy:
    subject: str
    day: str
    period_number: int
    vacancy_date: date
    original_teacher_id: str | None = None
    class_name: str | None = None
    leave_request_id: str | None = None


def normalize_day(value: str | None) -> str:
    day = (value or "").strip().lower()
    return DAY_ALIASES.get(day, day)


def day_for_date(value: date) -> str:
    return value.strftime("%A").lower()


def build_vacancy(
    *,
    subject: str | None,
    day: str | None,
    period_number: int | None,
    vacancy_date: date | None,
    periods_per_day: int,
    original_teacher_id: str | None = None,
    class_name: str | None = None,
    leave_request_id: str | None = None,
) -> Vacancy:
    errors: dict[str, str] = {}
    normalized_subject = (subject or "").strip()
    normalized_day = normalize_day(day)
    if not normalized_subject:
        errors["subject"] = "Subject is required"
    if normalized_day not in WEEK_DAYS:
        errors["day"] = f"Day must be one of {', '.join(WEEK_DAYS)}"
    if period_number is None or not 1 <= period_number <= periods_per_day:
        errors["period_number"] = f"Period number must be between 1 and {periods_per_day}"
    if vacancy_date is None:
        errors["date"] = "Date is required"
    elif normalized_day in WEEK_DAYS and day_for_date(vacancy_date) != normalized_day:
        errors["date"] = f"{vacancy_date.isoformat()} is not a {normalized_day}"
    if errors:
        raise InvalidVacancyError("Invalid vacancy", details=errors)
    return Vacancy(
        subject=normalized_subject,
        day=normalized_day,
        period_number=period_number,
        vacancy_date=vacancy_date,
        original_teacher_id=original_teacher_id,
        class_name=class_name,
        leave_request_id=leave_request_id,
    )


def leave_dates(leave: LeaveRequest) -> list[date]:
    dates: list[date] = []
    cursor = leave.leave_date
    while cursor <= leave.last_date:
        dates.append(cursor)
        cursor += timedelta(days=1)
    return dates


def resolve_vacancy(
    schedule: ScheduleRepository,
    leave: LeaveRequest,
    *,
    vacancy_date: date,
    period_number: int,
) -> Vacancy | None:
    """Map a leave date and period onto the absent teacher's regular class, if any."""
    if vacancy_date not in leave_dates(leave):
        return None
    day = day_for_date(vacancy_date)
    for period in schedule.get_regular_periods(leave.teacher_id):
        if period.day == day and period.period_number == period_number:
            return Vacancy(
                subject=period.subject,
                day=day,
                period_number=period_number,
                vacancy_date=vacancy_date,
                original_teacher_id=leave.teacher_id,
                class_name=period.class_name,
                leave_request_id=leave.id,
            )
    return None


def derive_vacancies(schedule: ScheduleRepository, leave: LeaveRequest) -> list[Vacancy]:
    periods = schedule.get_regular_periods(leave.teacher_id)
    vacancies: list[Vacancy] = []
    for vacancy_date in leave_dates(leave):
        day = day_for_date(vacancy_date)
        for period in sorted(periods, key=lambda item: item.period_number):
            if period.day != day:
                continue
            vacancies.append(
                Vacancy(
                    subject=period.subject,
                    day=day,
                    period_number=period.period_number,
                    vacancy_date=vacancy_date,
                    original_teacher_id=leave.teacher_id,
                    class_name=period.class_name,
                    leave_request_id=leave.id,
                )
            )
    return vacancies
