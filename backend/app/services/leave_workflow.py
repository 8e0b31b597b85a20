"""Leave lifecycle: apply, review, cancel, and the vacancies a leave opens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ForbiddenActionError,
    InvalidLeaveRequestError,
    LeaveConflictError,
    ResourceNotFoundError,
)
from app.models.leave_request import LeaveDuration, LeaveRequest, LeaveStatus, LeaveType
from app.models.substitution_offer import OPEN_OFFER_STATUSES, SubstitutionOffer, SubstitutionOfferStatus
from app.models.substitution_vacancy import SubstitutionVacancy
from app.models.teacher import Teacher, TeacherRole
from app.services import notifications as events
from app.services.attendance import deactivate_leave_attendance, record_leave_attendance
from app.services.audit import log_activity
from app.services.scoring import HARD_UNAVAILABLE
from app.services.substitution_controller import SubstitutionAssignmentController, transition_offer
from app.services.vacancies import Vacancy, derive_vacancies

logger = logging.getLogger(__name__)

REASON_MIN_LENGTH = 10
REASON_MAX_LENGTH = 500
REVIEW_STATUSES = (LeaveStatus.approved, LeaveStatus.rejected)
CANCELLABLE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


@dataclass(frozen=True)
class LeaveVacancyView:
    vacancy: Vacancy
    vacancy_id: str | None
    winner_offer_id: str | None
    winner_teacher_id: str | None
    open_offers: int


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_leave_or_404(db: Session, leave_id: str) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise ResourceNotFoundError("Leave request", leave_id)
    return leave


def apply_leave(
    db: Session,
    teacher: Teacher,
    *,
    leave_date: date,
    reason: str,
    leave_type: LeaveType = LeaveType.other,
    duration: LeaveDuration = LeaveDuration.full_day,
    end_date: date | None = None,
    today: date | None = None,
) -> LeaveRequest:
    today = today or datetime.now(timezone.utc).date()
    cleaned_reason = (reason or "").strip()
    if leave_date < today:
        raise InvalidLeaveRequestError("Leave date cannot be in the past")
    if end_date is not None and end_date < leave_date:
        raise InvalidLeaveRequestError("End date cannot be before the leave date")
    if not REASON_MIN_LENGTH <= len(cleaned_reason) <= REASON_MAX_LENGTH:
        raise InvalidLeaveRequestError(
            f"Reason must be between {REASON_MIN_LENGTH} and {REASON_MAX_LENGTH} characters"
        )
    if end_date is not None and end_date > leave_date:
        duration = LeaveDuration.multiple_days

    duplicate = db.execute(
        select(LeaveRequest.id).where(
            LeaveRequest.teacher_id == teacher.id,
            LeaveRequest.leave_date == leave_date,
            LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
        )
    ).first()
    if duplicate is not None:
        raise LeaveConflictError(
            "A leave request already exists for this date",
            details={"leave_request_id": duplicate.id},
        )

    leave = LeaveRequest(
        teacher_id=teacher.id,
        leave_date=leave_date,
        end_date=end_date,
        duration=duration,
        leave_type=leave_type,
        reason=cleaned_reason,
        status=LeaveStatus.pending,
    )
    db.add(leave)
    db.flush()
    log_activity(
        db,
        actor_id=teacher.id,
        action="leave.apply",
        entity_type="leave_request",
        entity_id=leave.id,
        details={"leave_date": leave_date.isoformat(), "leave_type": leave_type.value},
    )
    db.commit()
    db.refresh(leave)
    logger.info("Teacher %s applied for leave on %s", teacher.id, leave_date)
    return leave


def _dispatch_offers(
    controller: SubstitutionAssignmentController,
    leave: LeaveRequest,
    reviewer: Teacher,
    vacancies: list[Vacancy],
) -> dict[str, int]:
    summary = {"offers_created": 0, "vacancies_with_offers": 0, "unresourced_count": 0}
    per_vacancy = controller.settings.auto_dispatch_candidates
    for vacancy in vacancies:
        recommendations = controller.recommend_for_vacancy(vacancy, limit=per_vacancy)
        candidate_ids = [
            item.teacher_id
            for item in recommendations
            if item.available and item.scores.availability > HARD_UNAVAILABLE
        ]
        if not candidate_ids:
            summary["unresourced_count"] += 1
            continue
        outcome = controller.create_offers(
            leave_id=leave.id,
            vacancy_date=vacancy.vacancy_date,
            period_number=vacancy.period_number,
            candidate_ids=candidate_ids,
            assigned_by_id=reviewer.id,
            notes="Sent automatically on leave approval",
        )
        if not outcome.ok:
            logger.warning(
                "Automatic dispatch skipped %s period %d for leave %s: %s",
                vacancy.vacancy_date,
                vacancy.period_number,
                leave.id,
                outcome.message,
            )
            summary["unresourced_count"] += 1
            continue
        summary["offers_created"] += len(outcome.offers)
        summary["vacancies_with_offers"] += 1
    return summary


def review_leave(
    db: Session,
    leave_id: str,
    *,
    reviewer: Teacher,
    status: LeaveStatus,
    admin_comment: str | None,
    controller: SubstitutionAssignmentController,
) -> tuple[LeaveRequest, dict[str, Any]]:
    if status not in REVIEW_STATUSES:
        raise InvalidLeaveRequestError("Leave requests can only be approved or rejected")
    leave = get_leave_or_404(db, leave_id)
    if leave.status != LeaveStatus.pending:
        raise LeaveConflictError(f"Leave request is already {leave.status.value}")

    leave.status = status
    leave.admin_comment = (admin_comment or "").strip() or None
    leave.reviewed_by_id = reviewer.id
    leave.reviewed_at = _utc_now()

    summary: dict[str, Any] = {
        "attendance_records": 0,
        "vacancies": 0,
        "offers_created": 0,
        "vacancies_with_offers": 0,
        "unresourced_count": 0,
    }
    if status == LeaveStatus.approved:
        summary["attendance_records"] = record_leave_attendance(db, leave)
    log_activity(
        db,
        actor_id=reviewer.id,
        action=f"leave.{status.value}",
        entity_type="leave_request",
        entity_id=leave.id,
        details={"comment": leave.admin_comment},
    )
    db.commit()
    db.refresh(leave)

    if status == LeaveStatus.approved:
        vacancies = derive_vacancies(controller.schedule, leave)
        summary["vacancies"] = len(vacancies)
        if controller.settings.auto_dispatch_offers_on_approval and vacancies:
            summary.update(_dispatch_offers(controller, leave, reviewer, vacancies))
            db.refresh(leave)

    pending_events: list[tuple[str, str, dict[str, Any]]] = [
        (
            leave.teacher_id,
            events.LEAVE_STATUS_CHANGED,
            {
                "leave_request_id": leave.id,
                "leave_date": leave.leave_date.isoformat(),
                "status": leave.status.value,
                "offers_created": summary["offers_created"],
                "vacancies_with_offers": summary["vacancies_with_offers"],
            },
        )
    ]
    if summary["unresourced_count"]:
        payload = {
            "leave_request_id": leave.id,
            "leave_date": leave.leave_date.isoformat(),
            "unresourced_count": summary["unresourced_count"],
        }
        pending_events.extend(
            (admin.id, events.LEAVE_UNRESOURCED, payload) for admin in controller.directory.get_admins()
        )
    controller.emit(pending_events)
    logger.info("Leave %s %s by %s: %s", leave.id, status.value, reviewer.id, summary)
    return leave, summary


def cancel_leave(
    db: Session,
    leave_id: str,
    *,
    teacher: Teacher,
    controller: SubstitutionAssignmentController,
) -> LeaveRequest:
    leave = get_leave_or_404(db, leave_id)
    if leave.teacher_id != teacher.id and teacher.role != TeacherRole.admin:
        raise ForbiddenActionError("Only the requesting teacher can cancel this leave")
    if leave.status not in CANCELLABLE_STATUSES:
        raise LeaveConflictError(f"Leave request is already {leave.status.value}")

    claimed = db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave.id, LeaveRequest.status.in_(CANCELLABLE_STATUSES))
        .values(status=LeaveStatus.cancelled, final_substitute_id=None)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise LeaveConflictError("Leave request was changed by another request; reload and retry")

    now = _utc_now()
    candidates = list(
        db.execute(
            select(SubstitutionOffer).where(
                SubstitutionOffer.leave_request_id == leave.id,
                SubstitutionOffer.status.in_(OPEN_OFFER_STATUSES),
            )
        ).scalars()
    )
    open_offers = [
        offer
        for offer in candidates
        if transition_offer(
            db,
            offer.id,
            SubstitutionOffer.status.in_(OPEN_OFFER_STATUSES),
            status=SubstitutionOfferStatus.cancelled,
            cancelled_at=now,
            cancelled_by_id=teacher.id,
        )
    ]
    db.execute(
        update(SubstitutionVacancy)
        .where(SubstitutionVacancy.leave_request_id == leave.id)
        .values(winner_offer_id=None)
        .execution_options(synchronize_session=False)
    )
    vacancies = {
        item.id: item
        for item in db.execute(
            select(SubstitutionVacancy).where(SubstitutionVacancy.leave_request_id == leave.id)
        ).scalars()
    }

    deactivate_leave_attendance(db, leave)
    log_activity(
        db,
        actor_id=teacher.id,
        action="leave.cancel",
        entity_type="leave_request",
        entity_id=leave.id,
        details={"cancelled_offer_ids": [offer.id for offer in open_offers]},
    )
    db.commit()
    db.refresh(leave)

    controller.emit(
        [
            (
                offer.substitute_teacher_id,
                events.SUBSTITUTION_CANCELLED,
                {
                    "offer_id": offer.id,
                    "subject": vacancies[offer.vacancy_id].subject,
                    "class_name": vacancies[offer.vacancy_id].class_name,
                    "date": vacancies[offer.vacancy_id].vacancy_date.isoformat(),
                    "period_number": vacancies[offer.vacancy_id].period_number,
                },
            )
            for offer in open_offers
            if offer.vacancy_id in vacancies
        ]
    )
    return leave


def list_leave_vacancies(
    db: Session,
    leave: LeaveRequest,
    controller: SubstitutionAssignmentController,
) -> list[LeaveVacancyView]:
    stored = {
        (item.vacancy_date, item.period_number): item
        for item in db.execute(
            select(SubstitutionVacancy).where(SubstitutionVacancy.leave_request_id == leave.id)
        ).scalars()
    }
    offers_by_vacancy: dict[str, list[SubstitutionOffer]] = {}
    if stored:
        for offer in db.execute(
            select(SubstitutionOffer).where(
                SubstitutionOffer.vacancy_id.in_([item.id for item in stored.values()])
            )
        ).scalars():
            offers_by_vacancy.setdefault(offer.vacancy_id, []).append(offer)

    views: list[LeaveVacancyView] = []
    for vacancy in derive_vacancies(controller.schedule, leave):
        record = stored.get((vacancy.vacancy_date, vacancy.period_number))
        offers = offers_by_vacancy.get(record.id, []) if record else []
        winner = next((offer for offer in offers if record and offer.id == record.winner_offer_id), None)
        views.append(
            LeaveVacancyView(
                vacancy=vacancy,
                vacancy_id=record.id if record else None,
                winner_offer_id=record.winner_offer_id if record else None,
                winner_teacher_id=winner.substitute_teacher_id if winner else None,
                open_offers=sum(1 for offer in offers if offer.status == SubstitutionOfferStatus.requested),
            )
        )
    return views
