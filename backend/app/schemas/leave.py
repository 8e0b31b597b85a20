from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from app.models.leave_request import LeaveDuration, LeaveStatus, LeaveType


class LeaveRequestCreate(BaseModel):
    leave_date: date
    end_date: date | None = None
    duration: LeaveDuration = LeaveDuration.full_day
    leave_type: LeaveType = LeaveType.other
    reason: str = Field(min_length=10, max_length=500)

    @model_validator(mode="after")
    def check_range(self) -> "LeaveRequestCreate":
        if self.end_date is not None and self.end_date < self.leave_date:
            raise ValueError("end_date cannot be before leave_date")
        return self


class LeaveRequestStatusUpdate(BaseModel):
    status: LeaveStatus
    admin_comment: str | None = Field(default=None, max_length=1000)


class LeaveRequestOut(BaseModel):
    id: str
    teacher_id: str
    leave_date: date
    end_date: date | None = None
    duration: LeaveDuration
    leave_type: LeaveType
    reason: str
    status: LeaveStatus
    admin_comment: str | None = None
    reviewed_by_id: str | None = None
    reviewed_at: datetime | None = None
    final_substitute_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class LeaveReviewSummary(BaseModel):
    attendance_records: int = 0
    vacancies: int = 0
    offers_created: int = 0
    vacancies_with_offers: int = 0
    unresourced_count: int = 0


class LeaveReviewOut(BaseModel):
    leave: LeaveRequestOut
    summary: LeaveReviewSummary


class VacancyOut(BaseModel):
    vacancy_id: str | None = None
    leave_request_id: str
    date: date
    day: str
    period_number: int
    subject: str
    class_name: str | None = None
    winner_offer_id: str | None = None
    winner_teacher_id: str | None = None
    open_offers: int = 0
