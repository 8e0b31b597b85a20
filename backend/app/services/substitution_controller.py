"""Substitute offer state machine.

Offers move ``requested -> accepted | rejected``; an accepted offer can later be
``completed``, and an admin may ``cancel`` any offer. The first accept on a
vacancy wins: the vacancy's ``winner_offer_id`` is claimed with one
conditional UPDATE, and the winner's still-requested siblings are rejected in
the same transaction. Guard violations come back as ``OfferOutcome`` values;
only persistent storage failures raise.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import PersistenceError
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.substitution_offer import SubstitutionOffer, SubstitutionOfferStatus
from app.models.substitution_vacancy import SubstitutionVacancy
from app.models.teacher import Teacher, TeacherRole
from app.services import notifications as events
from app.services.audit import log_activity
from app.services.notifications import NotificationSink
from app.services.recommender import Recommendation, SubstituteRecommender
from app.services.repositories import (
    SqlAttendanceStore,
    SqlLeaveStore,
    SqlScheduleRepository,
    SqlTeacherDirectory,
)
from app.services.scoring import AvailabilityEvaluator, CandidateScorer, ScoringConfig
from app.services.subject_compatibility import SubjectCompatibilityClassifier
from app.services.vacancies import Vacancy, build_vacancy, leave_dates, resolve_vacancy

logger = logging.getLogger(__name__)

AUTO_DECLINE_REASON = "Automatically declined: another teacher accepted first."
EXPIRED_REASON = "Offer expired without response."
MAX_ATTEMPTS = 2

Event = tuple[str, str, dict[str, Any]]


class OfferFailure(str, Enum):
    not_found = "not_found"
    wrong_teacher = "wrong_teacher"
    already_resolved = "already_resolved"
    conflict_lost = "conflict_lost"
    validation = "validation"


class OfferDecision(str, Enum):
    accept = "accept"
    reject = "reject"


@dataclass
class OfferOutcome:
    offers: list[SubstitutionOffer] = field(default_factory=list)
    failure: OfferFailure | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, offers: Iterable[SubstitutionOffer], message: str | None = None) -> "OfferOutcome":
        return cls(offers=list(offers), message=message)

    @classmethod
    def fail(cls, failure: OfferFailure, message: str) -> "OfferOutcome":
        return cls(failure=failure, message=message)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def transition_offer(db: Session, offer_id: str, *criteria: Any, **values: Any) -> bool:
    """Apply ``values`` to one offer only while ``criteria`` still hold in the database.

    Returns whether the row moved. In-memory objects are left alone; they are
    refreshed when the surrounding transaction commits.
    """
    result = db.execute(
        update(SubstitutionOffer)
        .where(SubstitutionOffer.id == offer_id, *criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _vacancy_payload(vacancy: SubstitutionVacancy, **extra: Any) -> dict[str, Any]:
    payload = {
        "vacancy_id": vacancy.id,
        "leave_request_id": vacancy.leave_request_id,
        "subject": vacancy.subject,
        "class_name": vacancy.class_name,
        "day": vacancy.day,
        "period_number": vacancy.period_number,
        "date": vacancy.vacancy_date.isoformat(),
    }
    payload.update(extra)
    return payload


class SubstitutionAssignmentController:
    def __init__(
        self,
        db: Session,
        *,
        sink: NotificationSink | None = None,
        settings: Settings | None = None,
        scoring: ScoringConfig | None = None,
        classifier: SubjectCompatibilityClassifier | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.sink = sink
        self.clock = clock
        self.directory = SqlTeacherDirectory(db)
        self.schedule = SqlScheduleRepository(db)
        self.leaves = SqlLeaveStore(db)
        availability = AvailabilityEvaluator(
            directory=self.directory,
            schedule=self.schedule,
            attendance=SqlAttendanceStore(db),
        )
        self.scorer = CandidateScorer(
            availability=availability,
            schedule=self.schedule,
            classifier=classifier,
            config=scoring or ScoringConfig.from_settings(self.settings),
        )
        self.recommender = SubstituteRecommender(directory=self.directory, scorer=self.scorer)

    # -- recommendations -------------------------------------------------

    def _limit(self, limit: int | None) -> int:
        if limit is None:
            return self.settings.recommendation_default_limit
        return max(0, min(limit, self.settings.recommendation_max_limit))

    def get_recommendations(
        self,
        *,
        subject: str | None,
        day: str | None,
        period_number: int | None,
        vacancy_date: date | None,
        exclude_teacher_id: str | None = None,
        limit: int | None = None,
    ) -> list[Recommendation]:
        vacancy = build_vacancy(
            subject=subject,
            day=day,
            period_number=period_number,
            vacancy_date=vacancy_date,
            periods_per_day=self.settings.periods_per_day,
        )
        return self.recommender.recommend(vacancy, exclude_teacher_id, self._limit(limit))

    def recommend_for_vacancy(self, vacancy: Vacancy, limit: int | None = None) -> list[Recommendation]:
        return self.recommender.recommend(vacancy, vacancy.original_teacher_id, self._limit(limit))

    # -- retry / event plumbing ------------------------------------------

    def _run(self, operation: str, attempt: Callable[[], tuple[OfferOutcome, list[Event]]]) -> OfferOutcome:
        attempt_number = 0
        while True:
            attempt_number += 1
            try:
                outcome, pending_events = attempt()
            except (OperationalError, IntegrityError) as exc:
                self.db.rollback()
                if attempt_number >= MAX_ATTEMPTS:
                    logger.exception("%s failed after %d attempts", operation, attempt_number)
                    raise PersistenceError(
                        f"Unable to complete {operation}; please retry",
                        details={"operation": operation},
                    ) from exc
                logger.warning("%s hit a storage error, re-checking guards and retrying", operation, exc_info=True)
                continue
            if not outcome.ok:
                logger.info("%s rejected: %s (%s)", operation, outcome.failure.value, outcome.message)
            self.emit(pending_events)
            return outcome

    def emit(self, pending_events: list[Event]) -> None:
        if self.sink is None:
            return
        for teacher_id, event_type, payload in pending_events:
            try:
                self.sink.notify(teacher_id, event_type, payload)
            except Exception:
                logger.warning("Notification %s for teacher %s was not delivered", event_type, teacher_id, exc_info=True)

    def _reject(self, failure: OfferFailure, message: str) -> tuple[OfferOutcome, list[Event]]:
        self.db.rollback()
        return OfferOutcome.fail(failure, message), []

    def _is_expired(self, offer: SubstitutionOffer, now: datetime) -> bool:
        expires_at = _as_utc(offer.expires_at)
        return expires_at is not None and expires_at <= now

    def _sync_final_substitute(self, leave: LeaveRequest) -> None:
        covering = list(
            self.db.execute(
                select(SubstitutionOffer.substitute_teacher_id)
                .where(
                    SubstitutionOffer.leave_request_id == leave.id,
                    SubstitutionOffer.status.in_(
                        [SubstitutionOfferStatus.accepted, SubstitutionOfferStatus.completed]
                    ),
                )
                .order_by(SubstitutionOffer.accepted_at, SubstitutionOffer.id)
            ).scalars()
        )
        winner_id = Counter(covering).most_common(1)[0][0] if covering else None
        self.leaves.update_leave(leave.id, final_substitute_id=winner_id)

    # -- create ----------------------------------------------------------

    def create_offers(
        self,
        *,
        leave_id: str,
        vacancy_date: date,
        period_number: int,
        candidate_ids: list[str],
        assigned_by_id: str,
        notes: str | None = None,
    ) -> OfferOutcome:
        return self._run(
            "create_offers",
            lambda: self._create_offers_once(
                leave_id=leave_id,
                vacancy_date=vacancy_date,
                period_number=period_number,
                candidate_ids=candidate_ids,
                assigned_by_id=assigned_by_id,
                notes=notes,
            ),
        )

    def _get_or_create_vacancy(self, vacancy: Vacancy) -> SubstitutionVacancy:
        record = self.db.execute(
            select(SubstitutionVacancy).where(
                SubstitutionVacancy.leave_request_id == vacancy.leave_request_id,
                SubstitutionVacancy.vacancy_date == vacancy.vacancy_date,
                SubstitutionVacancy.period_number == vacancy.period_number,
            )
        ).scalar_one_or_none()
        if record is not None:
            return record
        record = SubstitutionVacancy(
            leave_request_id=vacancy.leave_request_id,
            original_teacher_id=vacancy.original_teacher_id,
            vacancy_date=vacancy.vacancy_date,
            day=vacancy.day,
            period_number=vacancy.period_number,
            subject=vacancy.subject,
            class_name=vacancy.class_name or "",
        )
        self.db.add(record)
        self.db.flush()
        return record

    def _candidate_problem(self, teacher: Teacher | None, teacher_id: str, leave: LeaveRequest) -> tuple[OfferFailure, str] | None:
        if teacher is None:
            return OfferFailure.not_found, f"Teacher {teacher_id} not found"
        if teacher.id == leave.teacher_id:
            return OfferFailure.validation, "Substitute must be different from the teacher on leave"
        if teacher.role != TeacherRole.teacher or not teacher.is_active:
            return OfferFailure.validation, f"{teacher.name} is not an active teacher"
        if not teacher.available:
            return OfferFailure.validation, f"{teacher.name} is not available for substitution"
        return None

    def _create_offers_once(
        self,
        *,
        leave_id: str,
        vacancy_date: date,
        period_number: int,
        candidate_ids: list[str],
        assigned_by_id: str,
        notes: str | None,
    ) -> tuple[OfferOutcome, list[Event]]:
        leave = self.leaves.get_leave(leave_id)
        if leave is None:
            return self._reject(OfferFailure.not_found, "Leave request not found")
        if leave.status != LeaveStatus.approved:
            return self._reject(OfferFailure.validation, "Substitute offers require an approved leave request")

        requested_ids = [item for item in dict.fromkeys(candidate_ids) if item]
        if not requested_ids:
            return self._reject(OfferFailure.validation, "Select at least one substitute teacher")
        if vacancy_date not in leave_dates(leave):
            return self._reject(OfferFailure.validation, f"{vacancy_date.isoformat()} is outside the leave period")

        vacancy = resolve_vacancy(self.schedule, leave, vacancy_date=vacancy_date, period_number=period_number)
        if vacancy is None:
            return self._reject(
                OfferFailure.validation,
                f"The teacher on leave has no scheduled class in period {period_number} on {vacancy_date.isoformat()}",
            )

        record = self._get_or_create_vacancy(vacancy)
        if record.winner_offer_id is not None:
            return self._reject(OfferFailure.conflict_lost, "Vacancy is already assigned to another teacher")

        offered_ids = set(
            self.db.execute(
                select(SubstitutionOffer.substitute_teacher_id).where(SubstitutionOffer.vacancy_id == record.id)
            ).scalars()
        )
        candidates: list[Teacher] = []
        for teacher_id in requested_ids:
            teacher = self.directory.get_teacher(teacher_id)
            problem = self._candidate_problem(teacher, teacher_id, leave)
            if problem is not None:
                return self._reject(*problem)
            if teacher.id in offered_ids:
                return self._reject(OfferFailure.validation, f"{teacher.name} already has an offer for this vacancy")
            candidates.append(teacher)

        now = self.clock()
        expires_at = None
        if self.settings.offer_expiry_minutes:
            expires_at = now + timedelta(minutes=self.settings.offer_expiry_minutes)

        created: list[SubstitutionOffer] = []
        for teacher in candidates:
            offer = SubstitutionOffer(
                vacancy_id=record.id,
                leave_request_id=leave.id,
                substitute_teacher_id=teacher.id,
                assigned_by_id=assigned_by_id,
                status=SubstitutionOfferStatus.requested,
                notes=_normalize_text(notes),
                requested_at=now,
                expires_at=expires_at,
            )
            self.db.add(offer)
            created.append(offer)
        self.db.flush()

        log_activity(
            self.db,
            actor_id=assigned_by_id,
            action="substitution.offers.create",
            entity_type="substitution_vacancy",
            entity_id=record.id,
            details={
                "leave_request_id": leave.id,
                "date": vacancy_date.isoformat(),
                "period_number": period_number,
                "substitute_teacher_ids": [item.id for item in candidates],
            },
        )
        self.db.commit()

        pending_events = [
            (offer.substitute_teacher_id, events.SUBSTITUTION_REQUESTED, _vacancy_payload(record, offer_id=offer.id))
            for offer in created
        ]
        return OfferOutcome.success(created, f"Sent {len(created)} substitute request(s)"), pending_events

    # -- respond ---------------------------------------------------------

    def respond_to_offer(
        self,
        *,
        offer_id: str,
        teacher_id: str,
        decision: OfferDecision | str,
        rejection_reason: str | None = None,
    ) -> OfferOutcome:
        decision = OfferDecision(decision)
        return self._run(
            f"respond_to_offer[{decision.value}]",
            lambda: self._respond_once(
                offer_id=offer_id,
                teacher_id=teacher_id,
                decision=decision,
                rejection_reason=rejection_reason,
            ),
        )

    def _respond_once(
        self,
        *,
        offer_id: str,
        teacher_id: str,
        decision: OfferDecision,
        rejection_reason: str | None,
    ) -> tuple[OfferOutcome, list[Event]]:
        offer = self.db.get(SubstitutionOffer, offer_id)
        if offer is None:
            return self._reject(OfferFailure.not_found, "Substitute offer not found")
        if offer.substitute_teacher_id != teacher_id:
            return self._reject(OfferFailure.wrong_teacher, "This substitute offer belongs to another teacher")
        if offer.status != SubstitutionOfferStatus.requested:
            return self._reject(OfferFailure.already_resolved, f"Offer is already {offer.status.value}")

        reason = _normalize_text(rejection_reason)
        if decision == OfferDecision.reject and not reason:
            return self._reject(OfferFailure.validation, "A rejection reason is required")

        vacancy = self.db.get(SubstitutionVacancy, offer.vacancy_id)
        leave = self.leaves.get_leave(offer.leave_request_id)
        if vacancy is None or leave is None:
            return self._reject(OfferFailure.not_found, "Vacancy for this offer no longer exists")

        now = self.clock()
        if self._is_expired(offer, now):
            return self._expire_on_response(offer, vacancy, now)
        if leave.status != LeaveStatus.approved:
            return self._reject(OfferFailure.validation, "Leave request is not active for substitution")

        substitute = self.directory.get_teacher(teacher_id)
        substitute_name = substitute.name if substitute else None
        if decision == OfferDecision.reject:
            return self._reject_offer(offer, vacancy, reason, substitute_name, now)
        return self._accept_offer(offer, vacancy, leave, substitute_name, now)

    def _expire_on_response(
        self,
        offer: SubstitutionOffer,
        vacancy: SubstitutionVacancy,
        now: datetime,
    ) -> tuple[OfferOutcome, list[Event]]:
        transition = self.db.execute(
            update(SubstitutionOffer)
            .where(
                SubstitutionOffer.id == offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.requested,
            )
            .values(
                status=SubstitutionOfferStatus.rejected,
                rejected_at=now,
                responded_at=now,
                rejection_reason=EXPIRED_REASON,
            )
        )
        if transition.rowcount != 1:
            return self._reject(OfferFailure.already_resolved, "Offer is already resolved")
        self.db.commit()
        return (
            OfferOutcome.fail(OfferFailure.already_resolved, "Offer expired before a response was received"),
            [(offer.substitute_teacher_id, events.SUBSTITUTION_EXPIRED, _vacancy_payload(vacancy, offer_id=offer.id))],
        )

    def _reject_offer(
        self,
        offer: SubstitutionOffer,
        vacancy: SubstitutionVacancy,
        reason: str,
        substitute_name: str | None,
        now: datetime,
    ) -> tuple[OfferOutcome, list[Event]]:
        transition = self.db.execute(
            update(SubstitutionOffer)
            .where(
                SubstitutionOffer.id == offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.requested,
            )
            .values(
                status=SubstitutionOfferStatus.rejected,
                rejected_at=now,
                responded_at=now,
                rejection_reason=reason,
            )
        )
        if transition.rowcount != 1:
            return self._reject(OfferFailure.already_resolved, "Offer is already resolved")

        log_activity(
            self.db,
            actor_id=offer.substitute_teacher_id,
            action="substitution.offer.reject",
            entity_type="substitution_offer",
            entity_id=offer.id,
            details={"vacancy_id": vacancy.id, "reason": reason},
        )
        self.db.commit()
        payload = _vacancy_payload(
            vacancy,
            offer_id=offer.id,
            substitute_name=substitute_name,
            rejection_reason=reason,
        )
        return OfferOutcome.success([offer], "Substitute request rejected"), [
            (offer.assigned_by_id, events.SUBSTITUTION_REJECTED, payload)
        ]

    def _accept_offer(
        self,
        offer: SubstitutionOffer,
        vacancy: SubstitutionVacancy,
        leave: LeaveRequest,
        substitute_name: str | None,
        now: datetime,
    ) -> tuple[OfferOutcome, list[Event]]:
        if vacancy.winner_offer_id is not None:
            return self._reject(OfferFailure.conflict_lost, "This class is already assigned to another teacher")

        claim = self.db.execute(
            update(SubstitutionVacancy)
            .where(
                SubstitutionVacancy.id == vacancy.id,
                SubstitutionVacancy.winner_offer_id.is_(None),
            )
            .values(winner_offer_id=offer.id)
        )
        if claim.rowcount != 1:
            return self._reject(OfferFailure.conflict_lost, "This class is already assigned to another teacher")

        transition = self.db.execute(
            update(SubstitutionOffer)
            .where(
                SubstitutionOffer.id == offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.requested,
            )
            .values(
                status=SubstitutionOfferStatus.accepted,
                accepted_at=now,
                responded_at=now,
            )
        )
        if transition.rowcount != 1:
            return self._reject(OfferFailure.already_resolved, "Offer is already resolved")

        sibling_rows = self.db.execute(
            select(SubstitutionOffer.id, SubstitutionOffer.substitute_teacher_id).where(
                SubstitutionOffer.vacancy_id == vacancy.id,
                SubstitutionOffer.id != offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.requested,
            )
        ).all()
        if sibling_rows:
            self.db.execute(
                update(SubstitutionOffer)
                .where(
                    SubstitutionOffer.id.in_([row.id for row in sibling_rows]),
                    SubstitutionOffer.status == SubstitutionOfferStatus.requested,
                )
                .values(
                    status=SubstitutionOfferStatus.rejected,
                    rejected_at=now,
                    responded_at=now,
                    rejection_reason=AUTO_DECLINE_REASON,
                )
            )

        self._sync_final_substitute(leave)
        log_activity(
            self.db,
            actor_id=offer.substitute_teacher_id,
            action="substitution.offer.accept",
            entity_type="substitution_offer",
            entity_id=offer.id,
            details={
                "vacancy_id": vacancy.id,
                "leave_request_id": leave.id,
                "auto_declined_offer_ids": [row.id for row in sibling_rows],
            },
        )
        self.db.commit()

        payload = _vacancy_payload(vacancy, offer_id=offer.id, substitute_name=substitute_name)
        pending_events: list[Event] = [
            (leave.teacher_id, events.SUBSTITUTION_ACCEPTED, payload),
            (offer.assigned_by_id, events.SUBSTITUTION_ACCEPTED, payload),
        ]
        pending_events.extend(
            (row.substitute_teacher_id, events.SUBSTITUTION_AUTO_DECLINED, _vacancy_payload(vacancy, offer_id=row.id))
            for row in sibling_rows
        )
        return OfferOutcome.success([offer], "Substitute request accepted"), pending_events

    # -- admin transitions -----------------------------------------------

    def cancel_offer(self, *, offer_id: str, admin_id: str) -> OfferOutcome:
        return self._run("cancel_offer", lambda: self._cancel_once(offer_id=offer_id, admin_id=admin_id))

    def _cancel_once(self, *, offer_id: str, admin_id: str) -> tuple[OfferOutcome, list[Event]]:
        offer = self.db.get(SubstitutionOffer, offer_id)
        if offer is None:
            return self._reject(OfferFailure.not_found, "Substitute offer not found")
        if offer.status == SubstitutionOfferStatus.cancelled:
            return OfferOutcome.success([offer], "Offer was already cancelled"), []

        previous_status = offer.status
        now = self.clock()
        cancelled = transition_offer(
            self.db,
            offer.id,
            SubstitutionOffer.status != SubstitutionOfferStatus.cancelled,
            status=SubstitutionOfferStatus.cancelled,
            cancelled_at=now,
            cancelled_by_id=admin_id,
        )
        if not cancelled:
            self.db.rollback()
            return OfferOutcome.success([offer], "Offer was already cancelled"), []

        self.db.execute(
            update(SubstitutionVacancy)
            .where(
                SubstitutionVacancy.id == offer.vacancy_id,
                SubstitutionVacancy.winner_offer_id == offer.id,
            )
            .values(winner_offer_id=None)
            .execution_options(synchronize_session=False)
        )

        leave = self.leaves.get_leave(offer.leave_request_id)
        if leave is not None:
            self._sync_final_substitute(leave)
        log_activity(
            self.db,
            actor_id=admin_id,
            action="substitution.offer.cancel",
            entity_type="substitution_offer",
            entity_id=offer.id,
            details={"previous_status": previous_status.value},
        )
        self.db.commit()

        vacancy = self.db.get(SubstitutionVacancy, offer.vacancy_id)
        pending_events: list[Event] = []
        if vacancy is not None and previous_status in (
            SubstitutionOfferStatus.requested,
            SubstitutionOfferStatus.accepted,
        ):
            pending_events.append(
                (offer.substitute_teacher_id, events.SUBSTITUTION_CANCELLED, _vacancy_payload(vacancy, offer_id=offer.id))
            )
        return OfferOutcome.success([offer], "Substitute offer cancelled"), pending_events

    def complete_offer(self, *, offer_id: str, admin_id: str) -> OfferOutcome:
        return self._run("complete_offer", lambda: self._complete_once(offer_id=offer_id, admin_id=admin_id))

    def _complete_once(self, *, offer_id: str, admin_id: str) -> tuple[OfferOutcome, list[Event]]:
        offer = self.db.get(SubstitutionOffer, offer_id)
        if offer is None:
            return self._reject(OfferFailure.not_found, "Substitute offer not found")
        if offer.status != SubstitutionOfferStatus.accepted:
            return self._reject(
                OfferFailure.already_resolved,
                f"Only accepted offers can be completed; offer is {offer.status.value}",
            )

        now = self.clock()
        transition = self.db.execute(
            update(SubstitutionOffer)
            .where(
                SubstitutionOffer.id == offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.accepted,
            )
            .values(status=SubstitutionOfferStatus.completed, completed_at=now)
        )
        if transition.rowcount != 1:
            return self._reject(OfferFailure.already_resolved, "Offer is no longer accepted")
        log_activity(
            self.db,
            actor_id=admin_id,
            action="substitution.offer.complete",
            entity_type="substitution_offer",
            entity_id=offer.id,
        )
        self.db.commit()

        vacancy = self.db.get(SubstitutionVacancy, offer.vacancy_id)
        pending_events: list[Event] = []
        if vacancy is not None:
            pending_events.append(
                (offer.substitute_teacher_id, events.SUBSTITUTION_COMPLETED, _vacancy_payload(vacancy, offer_id=offer.id))
            )
        return OfferOutcome.success([offer], "Substitution marked as completed"), pending_events

    def expire_overdue_offers(self, *, actor_id: str | None = None) -> int:
        """Reject every still-requested offer whose ``expires_at`` has passed.

        Each offer is moved with its own conditional UPDATE, so an offer that
        was accepted or auto-declined after the sweep read it is left untouched.
        Returns the number of offers actually expired.
        """
        now = self.clock()
        pending = list(
            self.db.execute(
                select(SubstitutionOffer).where(
                    SubstitutionOffer.status == SubstitutionOfferStatus.requested,
                    SubstitutionOffer.expires_at.is_not(None),
                )
            ).scalars()
        )
        expired = [
            offer
            for offer in pending
            if self._is_expired(offer, now)
            and transition_offer(
                self.db,
                offer.id,
                SubstitutionOffer.status == SubstitutionOfferStatus.requested,
                SubstitutionOffer.expires_at <= now,
                status=SubstitutionOfferStatus.rejected,
                rejected_at=now,
                responded_at=now,
                rejection_reason=EXPIRED_REASON,
            )
        ]
        if not expired:
            self.db.rollback()
            return 0

        log_activity(
            self.db,
            actor_id=actor_id,
            action="substitution.offers.expire",
            entity_type="substitution_offer",
            details={"expired_offer_ids": [offer.id for offer in expired]},
        )
        self.db.commit()

        vacancies = {
            item.id: item
            for item in self.db.execute(
                select(SubstitutionVacancy).where(SubstitutionVacancy.id.in_({offer.vacancy_id for offer in expired}))
            ).scalars()
        }
        self.emit(
            [
                (offer.substitute_teacher_id, events.SUBSTITUTION_EXPIRED, _vacancy_payload(vacancies[offer.vacancy_id], offer_id=offer.id))
                for offer in expired
                if offer.vacancy_id in vacancies
            ]
        )
        return len(expired)
