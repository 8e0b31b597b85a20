from fastapi import HTTPException, status

from app.models.substitution_offer import SubstitutionOffer
from app.schemas.substitution import RecommendationOut
from app.services.recommender import Recommendation
from app.services.substitution_controller import OfferFailure, OfferOutcome

FAILURE_STATUS_CODES = {
    OfferFailure.not_found: status.HTTP_404_NOT_FOUND,
    OfferFailure.wrong_teacher: status.HTTP_403_FORBIDDEN,
    OfferFailure.already_resolved: status.HTTP_409_CONFLICT,
    OfferFailure.conflict_lost: status.HTTP_409_CONFLICT,
    OfferFailure.validation: status.HTTP_400_BAD_REQUEST,
}


def unwrap_outcome(outcome: OfferOutcome) -> list[SubstitutionOffer]:
    """Return the offers of a successful outcome or raise the matching HTTP error."""
    if outcome.ok:
        return outcome.offers
    raise HTTPException(
        status_code=FAILURE_STATUS_CODES[outcome.failure],
        detail={"code": outcome.failure.value, "message": outcome.message},
    )


def recommendation_out(item: Recommendation) -> RecommendationOut:
    return RecommendationOut(
        teacher_id=item.teacher_id,
        name=item.name,
        subject=item.subject,
        department=item.department,
        available=item.available,
        attendance_percentage=item.attendance_percentage,
        leave_balances=item.leave_balances,
        scores=item.scores.as_dict(),
    )
