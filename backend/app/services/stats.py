from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.substitution_offer import SubstitutionOffer, SubstitutionOfferStatus
from app.services.substitution_controller import AUTO_DECLINE_REASON, EXPIRED_REASON


class StatsPeriod(str, Enum):
    week = "week"
    month = "month"
    year = "year"
    all = "all"


PERIOD_LENGTHS = {
    StatsPeriod.week: timedelta(days=7),
    StatsPeriod.month: timedelta(days=30),
    StatsPeriod.year: timedelta(days=365),
}

# System-resolved rejections are not teacher responses.
_SYSTEM_REASONS = (AUTO_DECLINE_REASON, EXPIRED_REASON)

SUBSTITUTION_DONE_STATUSES = (SubstitutionOfferStatus.accepted, SubstitutionOfferStatus.completed)


@dataclass(frozen=True)
class LeaveStatistics:
    period: StatsPeriod
    since: datetime | None
    total: int
    by_status: dict[str, int]
    by_type: list[tuple[str, int]] = field(default_factory=list)
    by_duration: list[tuple[str, int]] = field(default_factory=list)
    total_responses: int = 0
    average_response_seconds: float = 0.0


@dataclass(frozen=True)
class TeacherStatistics:
    teacher_id: str
    total_leaves: int
    by_status: dict[str, int]
    substitutions: int


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def period_start(period: StatsPeriod, now: datetime) -> datetime | None:
    length = PERIOD_LENGTHS.get(period)
    return now - length if length is not None else None


def _grouped_counts(db: Session, column, *criteria) -> list[tuple[str, int]]:
    count = func.count(LeaveRequest.id)
    rows = db.execute(select(column, count).where(*criteria).group_by(column)).all()
    # Largest group first; ties by name so the listing is stable.
    return sorted(((_enum_value(key), int(total)) for key, total in rows), key=lambda item: (-item[1], item[0]))


def _enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _status_counts(db: Session, *criteria) -> dict[str, int]:
    counts = {status.value: 0 for status in LeaveStatus}
    counts.update(_grouped_counts(db, LeaveRequest.status, *criteria))
    return counts


def leave_statistics(db: Session, *, period: StatsPeriod = StatsPeriod.month, now: datetime | None = None) -> LeaveStatistics:
    """Summarise leave requests and substitute responses over a trailing window.

    Leaves are windowed on ``created_at`` and offers on ``requested_at``. The
    response time averages ``responded_at - requested_at`` over offers a teacher
    answered themselves, so automatic declines and expiries are left out.
    """
    since = period_start(period, _as_utc(now or datetime.now(timezone.utc)))
    leave_window = (LeaveRequest.created_at >= since,) if since is not None else ()
    by_status = _status_counts(db, *leave_window)

    responses = select(SubstitutionOffer.requested_at, SubstitutionOffer.responded_at).where(
        SubstitutionOffer.responded_at.is_not(None),
        SubstitutionOffer.status.in_(
            (SubstitutionOfferStatus.accepted, SubstitutionOfferStatus.rejected, SubstitutionOfferStatus.completed)
        ),
        func.coalesce(SubstitutionOffer.rejection_reason, "").not_in(_SYSTEM_REASONS),
    )
    if since is not None:
        responses = responses.where(SubstitutionOffer.requested_at >= since)
    waits = [
        (_as_utc(responded_at) - _as_utc(requested_at)).total_seconds()
        for requested_at, responded_at in db.execute(responses).all()
    ]

    return LeaveStatistics(
        period=period,
        since=since,
        total=sum(by_status.values()),
        by_status=by_status,
        by_type=_grouped_counts(db, LeaveRequest.leave_type, *leave_window),
        by_duration=_grouped_counts(db, LeaveRequest.duration, *leave_window),
        total_responses=len(waits),
        average_response_seconds=round(sum(waits) / len(waits), 1) if waits else 0.0,
    )


def teacher_statistics(db: Session, teacher_id: str) -> TeacherStatistics:
    by_status = _status_counts(db, LeaveRequest.teacher_id == teacher_id)
    substitutions = db.execute(
        select(func.count(SubstitutionOffer.id)).where(
            SubstitutionOffer.substitute_teacher_id == teacher_id,
            SubstitutionOffer.status.in_(SUBSTITUTION_DONE_STATUSES),
        )
    ).scalar_one()
    return TeacherStatistics(
        teacher_id=teacher_id,
        total_leaves=sum(by_status.values()),
        by_status=by_status,
        substitutions=int(substitutions),
    )
