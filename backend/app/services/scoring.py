from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import Settings
from app.models.substitution_offer import SubstitutionOfferStatus
from app.models.teacher import Teacher
from app.services.repositories import AttendanceStore, ScheduleRepository, TeacherDirectory
from app.services.subject_compatibility import (
    DEFAULT_SUBJECT_FAMILIES,
    FamilyTableClassifier,
    SubjectCompatibilityClassifier,
)
from app.services.vacancies import Vacancy, normalize_day

HARD_UNAVAILABLE = 0.0
BUSY_WITH_OWN_CLASS = 0.5
FREE = 1.0


class ScoringWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    availability: float = Field(default=0.40, ge=0)
    workload: float = Field(default=0.25, ge=0)
    subject: float = Field(default=0.20, ge=0)
    attendance: float = Field(default=0.15, ge=0)


class ScoringConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    workload_ceiling: int = Field(default=35, ge=1)
    default_attendance: float = Field(default=0.8, ge=0, le=1)
    exclude_unavailable: bool = False
    subject_families: dict[str, tuple[str, ...]] = Field(default_factory=lambda: dict(DEFAULT_SUBJECT_FAMILIES))

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(
            workload_ceiling=settings.workload_ceiling,
            default_attendance=settings.default_attendance_score,
            exclude_unavailable=settings.exclude_unavailable_candidates,
        )


@dataclass(frozen=True)
class CandidateScores:
    availability: float
    workload: float
    subject: float
    attendance: float
    total: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


class AvailabilityEvaluator:
    def __init__(
        self,
        *,
        directory: TeacherDirectory,
        schedule: ScheduleRepository,
        attendance: AttendanceStore,
    ) -> None:
        self._directory = directory
        self._schedule = schedule
        self._attendance = attendance

    def score_availability(self, teacher_id: str, day: str, period_number: int, on_date: date) -> float:
        if self._directory.get_teacher(teacher_id) is None:
            return HARD_UNAVAILABLE
        slot_day = normalize_day(day)

        for commitment in self._schedule.get_active_substitution_commitments(teacher_id):
            if commitment.status != SubstitutionOfferStatus.accepted:
                continue
            if (
                commitment.day == slot_day
                and commitment.period_number == period_number
                and commitment.vacancy_date == on_date
            ):
                return HARD_UNAVAILABLE

        if self._attendance.get_absence_on_date(teacher_id, on_date):
            return HARD_UNAVAILABLE

        for period in self._schedule.get_regular_periods(teacher_id):
            if period.day == slot_day and period.period_number == period_number:
                return BUSY_WITH_OWN_CLASS
        return FREE


class CandidateScorer:
    def __init__(
        self,
        *,
        availability: AvailabilityEvaluator,
        schedule: ScheduleRepository,
        classifier: SubjectCompatibilityClassifier | None = None,
        config: ScoringConfig | None = None,
    ) -> None:
        self.config = config or ScoringConfig()
        self._availability = availability
        self._schedule = schedule
        self._classifier = classifier or FamilyTableClassifier(self.config.subject_families)

    def weekly_commitments(self, teacher_id: str) -> int:
        regular = len(self._schedule.get_regular_periods(teacher_id))
        substitutions = len(self._schedule.get_active_substitution_commitments(teacher_id))
        return regular + substitutions

    def workload_score(self, commitments: int) -> float:
        if commitments <= 0:
            return 1.0
        if commitments >= self.config.workload_ceiling:
            return 0.0
        return max(0.0, 1 - commitments / self.config.workload_ceiling)

    def attendance_score(self, teacher: Teacher) -> float:
        if teacher.attendance_percentage is None:
            return self.config.default_attendance
        return min(1.0, max(0.0, teacher.attendance_percentage / 100))

    def score(self, teacher: Teacher, vacancy: Vacancy) -> CandidateScores:
        weights = self.config.weights
        availability = self._availability.score_availability(
            teacher.id,
            vacancy.day,
            vacancy.period_number,
            vacancy.vacancy_date,
        )
        workload = self.workload_score(self.weekly_commitments(teacher.id))
        subject = self._classifier.classify(teacher.subject, vacancy.subject)
        attendance = self.attendance_score(teacher)
        total = (
            availability * weights.availability
            + workload * weights.workload
            + subject * weights.subject
            + attendance * weights.attendance
        )
        return CandidateScores(
            availability=availability,
            workload=workload,
            subject=subject,
            attendance=attendance,
            total=total,
        )
