from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db, get_substitution_controller, require_roles
from app.api.outcomes import recommendation_out, unwrap_outcome
from app.models.leave_request import LeaveRequest, LeaveStatus
from app.models.teacher import Teacher, TeacherRole
from app.schemas.leave import (
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestStatusUpdate,
    LeaveReviewOut,
    LeaveReviewSummary,
    VacancyOut,
)
from app.schemas.stats import LeaveStatisticsOut
from app.schemas.substitution import OfferCreate, OfferOut, RecommendationOut
from app.services.leave_workflow import (
    LeaveVacancyView,
    apply_leave,
    cancel_leave,
    get_leave_or_404,
    list_leave_vacancies,
    review_leave,
)
from app.services.stats import StatsPeriod, leave_statistics
from app.services.substitution_controller import SubstitutionAssignmentController
from app.services.vacancies import resolve_vacancy

router = APIRouter()


def _visible_leave(db: Session, leave_id: str, viewer: Teacher) -> LeaveRequest:
    leave = get_leave_or_404(db, leave_id)
    if viewer.role != TeacherRole.admin and leave.teacher_id != viewer.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view this leave request")
    return leave


def _vacancy_out(view: LeaveVacancyView) -> VacancyOut:
    return VacancyOut(
        vacancy_id=view.vacancy_id,
        leave_request_id=view.vacancy.leave_request_id,
        date=view.vacancy.vacancy_date,
        day=view.vacancy.day,
        period_number=view.vacancy.period_number,
        subject=view.vacancy.subject,
        class_name=view.vacancy.class_name,
        winner_offer_id=view.winner_offer_id,
        winner_teacher_id=view.winner_teacher_id,
        open_offers=view.open_offers,
    )


@router.get("/leaves", response_model=list[LeaveRequestOut])
def list_leave_requests(
    leave_status: LeaveStatus | None = Query(default=None, alias="status"),
    teacher_id: str | None = Query(default=None),
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> list[LeaveRequest]:
    query = select(LeaveRequest).order_by(LeaveRequest.leave_date.desc(), LeaveRequest.created_at.desc())
    if current_teacher.role != TeacherRole.admin:
        query = query.where(LeaveRequest.teacher_id == current_teacher.id)
    elif teacher_id:
        query = query.where(LeaveRequest.teacher_id == teacher_id)
    if leave_status is not None:
        query = query.where(LeaveRequest.status == leave_status)
    return list(db.execute(query).scalars())


@router.post("/leaves", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
def create_leave_request(
    payload: LeaveRequestCreate,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.teacher)),
    db: Session = Depends(get_db),
) -> LeaveRequest:
    return apply_leave(
        db,
        current_teacher,
        leave_date=payload.leave_date,
        end_date=payload.end_date,
        duration=payload.duration,
        leave_type=payload.leave_type,
        reason=payload.reason,
    )


@router.get("/leaves/stats", response_model=LeaveStatisticsOut)
def get_leave_statistics(
    period: StatsPeriod = Query(default=StatsPeriod.month),
    _: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
) -> LeaveStatisticsOut:
    return LeaveStatisticsOut.from_stats(leave_statistics(db, period=period))


@router.get("/leaves/{leave_id}", response_model=LeaveRequestOut)
def get_leave_request(
    leave_id: str,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> LeaveRequest:
    return _visible_leave(db, leave_id, current_teacher)


@router.put("/leaves/{leave_id}/status", response_model=LeaveReviewOut)
def update_leave_status(
    leave_id: str,
    payload: LeaveRequestStatusUpdate,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> LeaveReviewOut:
    leave, summary = review_leave(
        db,
        leave_id,
        reviewer=current_teacher,
        status=payload.status,
        admin_comment=payload.admin_comment,
        controller=controller,
    )
    return LeaveReviewOut(
        leave=LeaveRequestOut.model_validate(leave),
        summary=LeaveReviewSummary(**summary),
    )


@router.post("/leaves/{leave_id}/cancel", response_model=LeaveRequestOut)
def cancel_leave_request(
    leave_id: str,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> LeaveRequest:
    return cancel_leave(db, leave_id, teacher=current_teacher, controller=controller)


@router.get("/leaves/{leave_id}/vacancies", response_model=list[VacancyOut])
def list_vacancies(
    leave_id: str,
    _: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> list[VacancyOut]:
    leave = get_leave_or_404(db, leave_id)
    return [_vacancy_out(view) for view in list_leave_vacancies(db, leave, controller)]


@router.get("/leaves/{leave_id}/vacancies/recommendations", response_model=list[RecommendationOut])
def recommend_for_leave_vacancy(
    leave_id: str,
    vacancy_date: date = Query(alias="date"),
    period_number: int = Query(ge=1),
    limit: int | None = Query(default=None, ge=1),
    _: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> list[RecommendationOut]:
    leave = get_leave_or_404(db, leave_id)
    vacancy = resolve_vacancy(controller.schedule, leave, vacancy_date=vacancy_date, period_number=period_number)
    if vacancy is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No scheduled class for this leave on the given date and period",
        )
    return [recommendation_out(item) for item in controller.recommend_for_vacancy(vacancy, limit)]


@router.post(
    "/leaves/{leave_id}/substitute-offers",
    response_model=list[OfferOut],
    status_code=status.HTTP_201_CREATED,
)
def create_substitute_offers(
    leave_id: str,
    payload: OfferCreate,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> list[OfferOut]:
    outcome = controller.create_offers(
        leave_id=leave_id,
        vacancy_date=payload.date,
        period_number=payload.period_number,
        candidate_ids=payload.candidate_ids,
        assigned_by_id=current_teacher.id,
        notes=payload.notes,
    )
    return unwrap_outcome(outcome)
