from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db, get_substitution_controller, require_roles
from app.api.outcomes import recommendation_out, unwrap_outcome
from app.models.substitution_offer import SubstitutionOffer, SubstitutionOfferStatus
from app.models.teacher import Teacher, TeacherRole
from app.schemas.substitution import ExpireOffersOut, OfferOut, OfferRespond, RecommendationOut
from app.services.substitution_controller import SubstitutionAssignmentController

router = APIRouter()


@router.get("/substitutions/recommendations", response_model=list[RecommendationOut])
def get_recommendations(
    subject: str | None = Query(default=None, max_length=200),
    day: str | None = Query(default=None, max_length=20),
    period_number: int | None = Query(default=None),
    vacancy_date: date | None = Query(default=None, alias="date"),
    exclude_teacher_id: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=0),
    _: Teacher = Depends(require_roles(TeacherRole.admin)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> list[RecommendationOut]:
    recommendations = controller.get_recommendations(
        subject=subject,
        day=day,
        period_number=period_number,
        vacancy_date=vacancy_date,
        exclude_teacher_id=exclude_teacher_id,
        limit=limit,
    )
    return [recommendation_out(item) for item in recommendations]


@router.get("/substitutions/offers", response_model=list[OfferOut])
def list_offers(
    leave_request_id: str | None = Query(default=None),
    offer_status: SubstitutionOfferStatus | None = Query(default=None, alias="status"),
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> list[SubstitutionOffer]:
    query = select(SubstitutionOffer).order_by(SubstitutionOffer.requested_at.desc(), SubstitutionOffer.id)
    if current_teacher.role != TeacherRole.admin:
        query = query.where(SubstitutionOffer.substitute_teacher_id == current_teacher.id)
    if leave_request_id:
        query = query.where(SubstitutionOffer.leave_request_id == leave_request_id)
    if offer_status is not None:
        query = query.where(SubstitutionOffer.status == offer_status)
    return list(db.execute(query).scalars())


@router.post("/substitutions/offers/expire", response_model=ExpireOffersOut)
def expire_offers(
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> ExpireOffersOut:
    return ExpireOffersOut(expired=controller.expire_overdue_offers(actor_id=current_teacher.id))


@router.post("/substitutions/offers/{offer_id}/respond", response_model=OfferOut)
def respond_to_offer(
    offer_id: str,
    payload: OfferRespond,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.teacher)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> SubstitutionOffer:
    outcome = controller.respond_to_offer(
        offer_id=offer_id,
        teacher_id=current_teacher.id,
        decision=payload.decision,
        rejection_reason=payload.rejection_reason,
    )
    return unwrap_outcome(outcome)[0]


@router.post("/substitutions/offers/{offer_id}/complete", response_model=OfferOut)
def complete_offer(
    offer_id: str,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> SubstitutionOffer:
    outcome = controller.complete_offer(offer_id=offer_id, admin_id=current_teacher.id)
    return unwrap_outcome(outcome)[0]


@router.delete("/substitutions/offers/{offer_id}", response_model=OfferOut, status_code=status.HTTP_200_OK)
def cancel_offer(
    offer_id: str,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    controller: SubstitutionAssignmentController = Depends(get_substitution_controller),
) -> SubstitutionOffer:
    outcome = controller.cancel_offer(offer_id=offer_id, admin_id=current_teacher.id)
    return unwrap_outcome(outcome)[0]
