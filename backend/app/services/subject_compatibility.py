from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import re
from typing import Protocol

EXACT_MATCH_SCORE = 1.0
FAMILY_MATCH_SCORE = 0.7
BASELINE_SCORE = 0.3

DEFAULT_SUBJECT_FAMILIES: dict[str, tuple[str, ...]] = {
    "mathematics": ("mathematics", "maths", "math", "algebra", "geometry", "calculus", "statistics"),
    "science": ("science", "physics", "chemistry", "biology"),
    "languages": ("english", "hindi", "sanskrit", "french", "german"),
    "social": ("history", "geography", "civics", "economics"),
    "arts": ("art", "music", "dance", "drama"),
    "physical": ("physical education", "sports", "yoga"),
}


def normalize_subject(value: str | None) -> str:
    return " ".join((value or "").lower().split())


class SubjectCompatibilityClassifier(Protocol):
    def classify(self, teacher_subject: str | None, required_subject: str) -> float: ...


class ExactMatchClassifier:
    def classify(self, teacher_subject: str | None, required_subject: str) -> float:
        teacher = normalize_subject(teacher_subject)
        if teacher and teacher == normalize_subject(required_subject):
            return EXACT_MATCH_SCORE
        return BASELINE_SCORE


class FamilyTableClassifier(ExactMatchClassifier):
    """Exact match first, then a shared subject family, then the baseline.

    A subject belongs to a family when one of the family's terms appears in it
    as a whole word, so "Applied Statistics" is in the mathematics family but
    "Earth Science" is not in the arts family.
    """

    def __init__(self, families: Mapping[str, Sequence[str]] | None = None) -> None:
        table = families if families is not None else DEFAULT_SUBJECT_FAMILIES
        self._patterns: dict[str, list[re.Pattern[str]]] = {
            family: [re.compile(rf"\b{re.escape(normalize_subject(term))}\b") for term in terms if term.strip()]
            for family, terms in table.items()
        }

    def families_for(self, subject: str | None) -> set[str]:
        normalized = normalize_subject(subject)
        if not normalized:
            return set()
        return {
            family
            for family, patterns in self._patterns.items()
            if any(pattern.search(normalized) for pattern in patterns)
        }

    def classify(self, teacher_subject: str | None, required_subject: str) -> float:
        exact = super().classify(teacher_subject, required_subject)
        if exact == EXACT_MATCH_SCORE:
            return exact
        if self.families_for(teacher_subject) & self.families_for(required_subject):
            return FAMILY_MATCH_SCORE
        return BASELINE_SCORE


class CustomClassifier:
    def __init__(self, rule: Callable[[str | None, str], float]) -> None:
        self._rule = rule

    def classify(self, teacher_subject: str | None, required_subject: str) -> float:
        return min(1.0, max(0.0, float(self._rule(teacher_subject, required_subject))))
