from datetime import date

import pytest

from app.core.config import Settings
from app.core.exceptions import InvalidVacancyError
from app.models.teacher import TeacherRole, TeacherStatus
from app.services.scoring import HARD_UNAVAILABLE
from app.services.substitution_controller import SubstitutionAssignmentController

MONDAY = date(2030, 1, 7)


def _recommend(controller, **overrides):
    params = {
        "subject": "Mathematics",
        "day": "monday",
        "period_number": 3,
        "vacancy_date": MONDAY,
    }
    params.update(overrides)
    return controller.get_recommendations(**params)


def test_no_active_teachers_returns_empty_list(controller, make_teacher):
    make_teacher("Head Admin", role=TeacherRole.admin)
    make_teacher("Retired Teacher", status=TeacherStatus.inactive)

    assert _recommend(controller, subject="Sanskrit") == []


def test_ranking_prefers_free_subject_matches(controller, make_teacher, make_period):
    busy = make_teacher("Busy Math", subject="Mathematics")
    make_period(busy, "monday", 3)
    free_math = make_teacher("Free Math", subject="Mathematics")
    free_history = make_teacher("Free History", subject="History")

    ranked = _recommend(controller)

    assert [item.teacher_id for item in ranked] == [free_math.id, free_history.id, busy.id]
    assert ranked[0].scores.availability == 1.0
    assert ranked[2].scores.availability == 0.5


def test_equal_scores_keep_directory_order(controller, make_teacher):
    first = make_teacher("Anil", subject="Mathematics")
    second = make_teacher("Bina", subject="Mathematics")

    ranked = _recommend(controller)

    assert [item.teacher_id for item in ranked] == [first.id, second.id]
    assert ranked[0].scores.total == ranked[1].scores.total


def test_excluded_and_absent_teachers_are_not_recommended(db_session, controller, make_teacher, make_leave):
    absent = make_teacher("On Leave")
    other = make_teacher("Other")
    make_leave(absent)

    ranked = _recommend(controller, exclude_teacher_id=other.id)

    assert [item.teacher_id for item in ranked] == [absent.id]
    assert ranked[0].scores.availability == HARD_UNAVAILABLE


def test_unavailable_candidates_can_be_filtered(db_session, sink, make_teacher, make_leave):
    absent = make_teacher("On Leave")
    present = make_teacher("Present")
    make_leave(absent)
    controller = SubstitutionAssignmentController(
        db_session,
        sink=sink,
        settings=Settings(exclude_unavailable_candidates=True),
    )

    assert [item.teacher_id for item in _recommend(controller)] == [present.id]


def test_limit_is_respected_and_clamped(controller, make_teacher):
    for index in range(25):
        make_teacher(f"Teacher {index:02d}")

    assert len(_recommend(controller, limit=2)) == 2
    assert len(_recommend(controller, limit=0)) == 0
    assert len(_recommend(controller, limit=100)) == controller.settings.recommendation_max_limit
    assert len(_recommend(controller)) == controller.settings.recommendation_default_limit


def test_invalid_vacancy_reports_each_field(controller):
    with pytest.raises(InvalidVacancyError) as excinfo:
        _recommend(controller, subject=" ", day="funday", period_number=9, vacancy_date=date(2030, 1, 8))

    assert set(excinfo.value.details) == {"subject", "day", "period_number"}


def test_date_must_fall_on_the_requested_day(controller):
    with pytest.raises(InvalidVacancyError) as excinfo:
        _recommend(controller, day="tue")

    assert "date" in excinfo.value.details
