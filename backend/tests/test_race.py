"""Concurrent offer transitions against one SQLite file.

Each test drives two independent sessions: one plays the teacher accepting an
offer, the other an admin operation that read the same offers first.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings
from app.db.base import Base
from app.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from app.models.substitution_offer import SubstitutionOffer, SubstitutionOfferStatus
from app.models.substitution_vacancy import SubstitutionVacancy
from app.models.teacher import Teacher, TeacherRole
from app.models.timetable_period import TimetablePeriod
from app.services.leave_workflow import cancel_leave
from app.services.substitution_controller import (
    AUTO_DECLINE_REASON,
    OfferFailure,
    SubstitutionAssignmentController,
)

MONDAY = date(2030, 1, 7)


@pytest.fixture()
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def expiring_settings():
    return Settings(auto_dispatch_offers_on_approval=False, offer_expiry_minutes=30)


def _seed_offers(file_sessions, settings):
    with file_sessions() as db:
        absent = Teacher(name="Absent", email="absent@school.test", subject="Mathematics")
        admin = Teacher(name="Admin", email="admin@school.test", role=TeacherRole.admin)
        t1 = Teacher(name="T1", email="t1@school.test", subject="Mathematics")
        t3 = Teacher(name="T3", email="t3@school.test", subject="Mathematics")
        db.add_all([absent, admin, t1, t3])
        db.flush()
        db.add(TimetablePeriod(teacher_id=absent.id, day="monday", period_number=2, subject="Mathematics", class_name="8-C"))
        leave = LeaveRequest(
            teacher_id=absent.id,
            leave_date=MONDAY,
            leave_type=LeaveType.personal,
            reason="Family function out of town",
            status=LeaveStatus.approved,
        )
        db.add(leave)
        db.commit()

        outcome = SubstitutionAssignmentController(db, settings=settings).create_offers(
            leave_id=leave.id,
            vacancy_date=MONDAY,
            period_number=2,
            candidate_ids=[t1.id, t3.id],
            assigned_by_id=admin.id,
        )
        assert outcome.ok
        offers = {offer.substitute_teacher_id: offer.id for offer in outcome.offers}
        return {
            "t1": (t1.id, offers[t1.id]),
            "t3": (t3.id, offers[t3.id]),
            "leave_id": leave.id,
            "absent_id": absent.id,
            "admin_id": admin.id,
        }


@pytest.fixture()
def offered_vacancy(file_sessions, settings):
    return _seed_offers(file_sessions, settings)


def _accept_before_first_update(session, accept):
    """Run ``accept`` in another session just before ``session`` issues its first UPDATE."""
    results = []

    @event.listens_for(session, "do_orm_execute")
    def _interleave(orm_execute_state):
        if orm_execute_state.is_update and not results:
            results.append(accept())

    return results


def _accept_t1(file_sessions, settings, seeded):
    t1_id, t1_offer_id = seeded["t1"]

    def accept():
        with file_sessions() as db:
            return SubstitutionAssignmentController(db, settings=settings).respond_to_offer(
                offer_id=t1_offer_id,
                teacher_id=t1_id,
                decision="accept",
            )

    return accept


def _stored_state(file_sessions, seeded):
    with file_sessions() as db:
        offers = {
            offer.substitute_teacher_id: (offer.status, offer.rejection_reason)
            for offer in db.execute(select(SubstitutionOffer)).scalars()
        }
        vacancy = db.execute(select(SubstitutionVacancy)).scalar_one()
        leave = db.get(LeaveRequest, seeded["leave_id"])
        return offers, vacancy.winner_offer_id, leave.status, leave.final_substitute_id


def test_stale_concurrent_accept_loses(file_sessions, settings, offered_vacancy):
    t1_id, t1_offer_id = offered_vacancy["t1"]
    t3_id, t3_offer_id = offered_vacancy["t3"]
    session_a = file_sessions()
    session_b = file_sessions()
    try:
        # Session B reads the offer and the open vacancy before A commits.
        stale_offer = session_b.get(SubstitutionOffer, t3_offer_id)
        stale_vacancy = session_b.get(SubstitutionVacancy, stale_offer.vacancy_id)
        assert stale_vacancy.winner_offer_id is None

        first = SubstitutionAssignmentController(session_a, settings=settings).respond_to_offer(
            offer_id=t1_offer_id,
            teacher_id=t1_id,
            decision="accept",
        )
        second = SubstitutionAssignmentController(session_b, settings=settings).respond_to_offer(
            offer_id=t3_offer_id,
            teacher_id=t3_id,
            decision="accept",
        )
    finally:
        session_a.close()
        session_b.close()

    assert first.ok
    assert second.failure == OfferFailure.conflict_lost

    with file_sessions() as db:
        statuses = dict(db.execute(select(SubstitutionOffer.substitute_teacher_id, SubstitutionOffer.status)).all())
        vacancy = db.execute(select(SubstitutionVacancy)).scalar_one()
        leave = db.get(LeaveRequest, offered_vacancy["leave_id"])
        assert statuses == {t1_id: SubstitutionOfferStatus.accepted, t3_id: SubstitutionOfferStatus.rejected}
        assert vacancy.winner_offer_id == t1_offer_id
        assert leave.final_substitute_id == t1_id


def test_expiry_sweep_skips_offers_accepted_after_it_read_them(file_sessions, expiring_settings):
    seeded = _seed_offers(file_sessions, expiring_settings)
    t1_id, t1_offer_id = seeded["t1"]
    t3_id, _ = seeded["t3"]
    later = datetime.now(timezone.utc) + timedelta(hours=2)

    with file_sessions() as sweeper:
        accepted = _accept_before_first_update(sweeper, _accept_t1(file_sessions, expiring_settings, seeded))
        expired = SubstitutionAssignmentController(
            sweeper,
            settings=expiring_settings,
            clock=lambda: later,
        ).expire_overdue_offers()

    assert [outcome.ok for outcome in accepted] == [True]
    assert expired == 0
    offers, winner_offer_id, leave_status, final_substitute_id = _stored_state(file_sessions, seeded)
    assert offers == {
        t1_id: (SubstitutionOfferStatus.accepted, None),
        t3_id: (SubstitutionOfferStatus.rejected, AUTO_DECLINE_REASON),
    }
    assert winner_offer_id == t1_offer_id
    assert (leave_status, final_substitute_id) == (LeaveStatus.approved, t1_id)


def test_cancel_offer_racing_an_accept_reopens_the_vacancy(file_sessions, settings, offered_vacancy):
    t1_id, t1_offer_id = offered_vacancy["t1"]
    t3_id, _ = offered_vacancy["t3"]

    with file_sessions() as admin_db:
        assert admin_db.get(SubstitutionOffer, t1_offer_id).status == SubstitutionOfferStatus.requested
        accepted = _accept_before_first_update(admin_db, _accept_t1(file_sessions, settings, offered_vacancy))
        outcome = SubstitutionAssignmentController(admin_db, settings=settings).cancel_offer(
            offer_id=t1_offer_id,
            admin_id=offered_vacancy["admin_id"],
        )

    assert [item.ok for item in accepted] == [True]
    assert outcome.ok
    offers, winner_offer_id, _, final_substitute_id = _stored_state(file_sessions, offered_vacancy)
    assert offers == {
        t1_id: (SubstitutionOfferStatus.cancelled, None),
        t3_id: (SubstitutionOfferStatus.rejected, AUTO_DECLINE_REASON),
    }
    assert winner_offer_id is None
    assert final_substitute_id is None


def test_cancel_leave_racing_an_accept_keeps_auto_declined_siblings(file_sessions, settings, offered_vacancy):
    t1_id, _ = offered_vacancy["t1"]
    t3_id, _ = offered_vacancy["t3"]

    with file_sessions() as owner_db:
        owner = owner_db.get(Teacher, offered_vacancy["absent_id"])
        owner_db.execute(select(SubstitutionOffer)).scalars().all()
        accepted = _accept_before_first_update(owner_db, _accept_t1(file_sessions, settings, offered_vacancy))
        cancel_leave(
            owner_db,
            offered_vacancy["leave_id"],
            teacher=owner,
            controller=SubstitutionAssignmentController(owner_db, settings=settings),
        )

    assert [item.ok for item in accepted] == [True]
    offers, winner_offer_id, leave_status, final_substitute_id = _stored_state(file_sessions, offered_vacancy)
    assert offers == {
        t1_id: (SubstitutionOfferStatus.cancelled, None),
        t3_id: (SubstitutionOfferStatus.rejected, AUTO_DECLINE_REASON),
    }
    assert winner_offer_id is None
    assert (leave_status, final_substitute_id) == (LeaveStatus.cancelled, None)
