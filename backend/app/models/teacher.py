import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base

DEFAULT_LEAVE_BALANCES = {"casual_leave": 8, "medical_leave": 10, "earned_leave": 2.5}


class TeacherRole(str, Enum):
    admin = "admin"
    teacher = "teacher"


class TeacherStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    role: Mapped[TeacherRole] = mapped_column(
        SAEnum(TeacherRole, name="teacher_role"),
        nullable=False,
        default=TeacherRole.teacher,
    )
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    workload: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[TeacherStatus] = mapped_column(
        SAEnum(TeacherStatus, name="teacher_status"),
        nullable=False,
        default=TeacherStatus.active,
        index=True,
    )
    attendance_percentage: Mapped[float | None] = mapped_column(Float, nullable=True, default=100.0)
    leave_balances: Mapped[dict] = mapped_column(JSON, nullable=False, default=lambda: dict(DEFAULT_LEAVE_BALANCES))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_active(self) -> bool:
        return self.status == TeacherStatus.active
