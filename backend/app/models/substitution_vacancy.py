import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class SubstitutionVacancy(Base):
    __tablename__ = "substitution_vacancies"
    __table_args__ = (
        UniqueConstraint(
            "leave_request_id",
            "vacancy_date",
            "period_number",
            name="uq_substitution_vacancy_slot",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    leave_request_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    original_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    vacancy_date: Mapped[date] = mapped_column(Date, nullable=False)
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    class_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Set by a single conditional UPDATE (winner_offer_id IS NULL) when an offer is accepted.
    winner_offer_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
