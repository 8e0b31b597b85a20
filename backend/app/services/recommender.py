from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from app.services.repositories import TeacherDirectory
from app.services.scoring import HARD_UNAVAILABLE, CandidateScorer, CandidateScores
from app.services.vacancies import Vacancy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recommendation:
    teacher_id: str
    name: str
    subject: str | None
    department: str | None
    available: bool
    attendance_percentage: float | None
    leave_balances: dict[str, Any]
    scores: CandidateScores


class SubstituteRecommender:
    def __init__(self, *, directory: TeacherDirectory, scorer: CandidateScorer) -> None:
        self._directory = directory
        self._scorer = scorer

    def recommend(
        self,
        vacancy: Vacancy,
        exclude_teacher_id: str | None = None,
        max_results: int = 5,
    ) -> list[Recommendation]:
        if max_results <= 0:
            return []
        excluded = {item for item in (exclude_teacher_id, vacancy.original_teacher_id) if item}
        pool = [teacher for teacher in self._directory.get_active_teachers() if teacher.id not in excluded]
        if not pool:
            logger.info(
                "No substitute candidates for %s period %d on %s",
                vacancy.subject,
                vacancy.period_number,
                vacancy.vacancy_date.isoformat(),
            )
            return []

        ranked: list[Recommendation] = []
        for teacher in pool:
            scores = self._scorer.score(teacher, vacancy)
            if self._scorer.config.exclude_unavailable and scores.availability == HARD_UNAVAILABLE:
                continue
            ranked.append(
                Recommendation(
                    teacher_id=teacher.id,
                    name=teacher.name,
                    subject=teacher.subject,
                    department=teacher.department,
                    available=teacher.available,
                    attendance_percentage=teacher.attendance_percentage,
                    leave_balances=dict(teacher.leave_balances or {}),
                    scores=scores,
                )
            )

        # list.sort is stable, so ties keep directory order.
        ranked.sort(key=lambda item: item.scores.total, reverse=True)
        return ranked[:max_results]
