import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class SubstitutionOfferStatus(str, Enum):
    requested = "requested"
    accepted = "accepted"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


OPEN_OFFER_STATUSES = (SubstitutionOfferStatus.requested, SubstitutionOfferStatus.accepted)


class SubstitutionOffer(Base):
    __tablename__ = "substitution_offers"
    __table_args__ = (
        UniqueConstraint(
            "vacancy_id",
            "substitute_teacher_id",
            name="uq_substitution_offer_identity",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vacancy_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    leave_request_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    substitute_teacher_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assigned_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[SubstitutionOfferStatus] = mapped_column(
        SAEnum(SubstitutionOfferStatus, name="substitution_offer_status"),
        nullable=False,
        default=SubstitutionOfferStatus.requested,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
