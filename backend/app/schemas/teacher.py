from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.teacher import TeacherRole, TeacherStatus


class TeacherOut(BaseModel):
    id: str
    name: str
    email: str
    role: TeacherRole
    subject: str | None = None
    department: str | None = None
    workload: int
    available: bool
    status: TeacherStatus
    attendance_percentage: float | None = None
    leave_balances: dict[str, Any] = {}
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class AvailabilityUpdate(BaseModel):
    available: bool
    workload: int | None = Field(default=None, ge=0)


class AttendanceRecomputeOut(BaseModel):
    teacher_id: str
    attendance_percentage: float | None = None
    updated: bool
