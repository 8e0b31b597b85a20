from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.models.substitution_offer import SubstitutionOfferStatus


class CandidateScoresOut(BaseModel):
    availability: float
    workload: float
    subject: float
    attendance: float
    total: float


class RecommendationOut(BaseModel):
    teacher_id: str
    name: str
    subject: str | None = None
    department: str | None = None
    available: bool
    attendance_percentage: float | None = None
    leave_balances: dict[str, Any] = {}
    scores: CandidateScoresOut


class OfferCreate(BaseModel):
    date: date
    period_number: int = Field(ge=1)
    candidate_ids: list[str] = Field(min_length=1, max_length=20)
    notes: str | None = Field(default=None, max_length=1000)


class OfferRespond(BaseModel):
    decision: Literal["accept", "reject"]
    rejection_reason: str | None = Field(default=None, max_length=1000)


class OfferOut(BaseModel):
    id: str
    vacancy_id: str
    leave_request_id: str
    substitute_teacher_id: str
    assigned_by_id: str
    status: SubstitutionOfferStatus
    notes: str | None = None
    requested_at: datetime
    expires_at: datetime | None = None
    responded_at: datetime | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}


class ExpireOffersOut(BaseModel):
    expired: int
