from datetime import date, timedelta

from app.api.deps import get_app_settings
from app.core.config import Settings
from app.main import app
from app.models.leave_request import LeaveStatus
from app.models.teacher import TeacherRole

MONDAY = date(2030, 1, 7)


def _setup_staff(make_teacher, make_period):
    admin = make_teacher("Admin User", subject=None, role=TeacherRole.admin)
    absent = make_teacher("Asha Menon", subject="Mathematics")
    make_period(absent, "monday", 3, class_name="10-B")
    make_period(absent, "tuesday", 1, class_name="9-A")
    return admin, absent


def test_teacher_leave_request_flow(client, make_teacher, make_period, auth_headers):
    admin, teacher = _setup_staff(make_teacher, make_period)
    colleague = make_teacher("Colleague")

    create_response = client.post(
        "/api/leaves",
        json={"leave_date": MONDAY.isoformat(), "leave_type": "sick", "reason": "Medical appointment in the city"},
        headers=auth_headers(teacher),
    )
    assert create_response.status_code == 201
    leave_id = create_response.json()["id"]
    assert create_response.json()["status"] == "pending"

    duplicate = client.post(
        "/api/leaves",
        json={"leave_date": MONDAY.isoformat(), "leave_type": "personal", "reason": "Another reason entirely"},
        headers=auth_headers(teacher),
    )
    assert duplicate.status_code == 409

    own = client.get("/api/leaves", headers=auth_headers(teacher))
    assert [item["id"] for item in own.json()] == [leave_id]
    assert client.get("/api/leaves", headers=auth_headers(colleague)).json() == []
    assert client.get(f"/api/leaves/{leave_id}", headers=auth_headers(colleague)).status_code == 403

    admin_list = client.get("/api/leaves", params={"status": "pending"}, headers=auth_headers(admin))
    assert any(item["id"] == leave_id for item in admin_list.json())

    review = client.put(
        f"/api/leaves/{leave_id}/status",
        json={"status": "approved", "admin_comment": "Get well soon"},
        headers=auth_headers(admin),
    )
    assert review.status_code == 200
    body = review.json()
    assert body["leave"]["status"] == "approved"
    assert body["summary"]["attendance_records"] == 1
    assert body["summary"]["vacancies"] == 1
    assert body["summary"]["offers_created"] == 0

    again = client.put(
        f"/api/leaves/{leave_id}/status",
        json={"status": "rejected"},
        headers=auth_headers(admin),
    )
    assert again.status_code == 409

    inbox = client.get("/api/notifications", headers=auth_headers(teacher))
    assert [item["event_type"] for item in inbox.json()] == ["leave.status_changed"]


def test_leave_application_validation(client, make_teacher, auth_headers):
    teacher = make_teacher("Teacher")
    past = client.post(
        "/api/leaves",
        json={"leave_date": (date.today() - timedelta(days=2)).isoformat(), "reason": "Forgot to apply earlier"},
        headers=auth_headers(teacher),
    )
    short = client.post(
        "/api/leaves",
        json={"leave_date": MONDAY.isoformat(), "reason": "sick"},
        headers=auth_headers(teacher),
    )
    backwards = client.post(
        "/api/leaves",
        json={"leave_date": MONDAY.isoformat(), "end_date": "2030-01-01", "reason": "Conference travel abroad"},
        headers=auth_headers(teacher),
    )

    assert past.status_code == 400
    assert past.json()["message"] == "Leave date cannot be in the past"
    assert short.status_code == 422
    assert backwards.status_code == 422


def test_admin_cannot_apply_and_teacher_cannot_review(client, make_teacher, make_leave, auth_headers):
    admin = make_teacher("Admin", role=TeacherRole.admin)
    teacher = make_teacher("Teacher")
    leave = make_leave(teacher, status=LeaveStatus.pending)

    apply = client.post(
        "/api/leaves",
        json={"leave_date": MONDAY.isoformat(), "reason": "Annual health checkup"},
        headers=auth_headers(admin),
    )
    review = client.put(f"/api/leaves/{leave.id}/status", json={"status": "approved"}, headers=auth_headers(teacher))

    assert apply.status_code == 403
    assert review.status_code == 403


def test_approval_dispatches_offers_when_enabled(client, make_teacher, make_period, make_leave, auth_headers):
    admin, absent = _setup_staff(make_teacher, make_period)
    free = make_teacher("Free Teacher")
    make_teacher("Unavailable Teacher", available=False)
    leave = make_leave(absent, status=LeaveStatus.pending)
    app.dependency_overrides[get_app_settings] = lambda: Settings(auto_dispatch_offers_on_approval=True)

    review = client.put(f"/api/leaves/{leave.id}/status", json={"status": "approved"}, headers=auth_headers(admin))

    summary = review.json()["summary"]
    assert summary["offers_created"] == 1
    assert summary["vacancies_with_offers"] == 1
    offers = client.get("/api/substitutions/offers", headers=auth_headers(free)).json()
    assert len(offers) == 1
    assert offers[0]["status"] == "requested"
    inbox = client.get("/api/notifications", headers=auth_headers(free)).json()
    assert inbox[0]["event_type"] == "substitution.requested"


def test_unresourced_vacancies_alert_admins(client, make_teacher, make_period, make_leave, auth_headers):
    admin, absent = _setup_staff(make_teacher, make_period)
    leave = make_leave(absent, status=LeaveStatus.pending)
    app.dependency_overrides[get_app_settings] = lambda: Settings(auto_dispatch_offers_on_approval=True)

    review = client.put(f"/api/leaves/{leave.id}/status", json={"status": "approved"}, headers=auth_headers(admin))

    assert review.json()["summary"]["unresourced_count"] == 1
    inbox = client.get("/api/notifications", params={"event_type": "leave.unresourced"}, headers=auth_headers(admin))
    assert len(inbox.json()) == 1


def test_vacancies_and_offers_for_a_leave(client, make_teacher, make_period, make_leave, auth_headers):
    admin, absent = _setup_staff(make_teacher, make_period)
    candidate = make_teacher("Candidate")
    leave = make_leave(absent, end_date=MONDAY + timedelta(days=1))

    vacancies = client.get(f"/api/leaves/{leave.id}/vacancies", headers=auth_headers(admin)).json()
    assert [(item["date"], item["period_number"]) for item in vacancies] == [("2030-01-07", 3), ("2030-01-08", 1)]
    assert all(item["vacancy_id"] is None for item in vacancies)

    recommendations = client.get(
        f"/api/leaves/{leave.id}/vacancies/recommendations",
        params={"date": "2030-01-07", "period_number": 3},
        headers=auth_headers(admin),
    )
    assert [item["teacher_id"] for item in recommendations.json()] == [candidate.id]
    assert recommendations.json()[0]["scores"]["subject"] == 1.0

    no_class = client.get(
        f"/api/leaves/{leave.id}/vacancies/recommendations",
        params={"date": "2030-01-07", "period_number": 5},
        headers=auth_headers(admin),
    )
    assert no_class.status_code == 404

    created = client.post(
        f"/api/leaves/{leave.id}/substitute-offers",
        json={"date": "2030-01-07", "period_number": 3, "candidate_ids": [candidate.id]},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201

    vacancies = client.get(f"/api/leaves/{leave.id}/vacancies", headers=auth_headers(admin)).json()
    assert vacancies[0]["vacancy_id"] == created.json()[0]["vacancy_id"]
    assert vacancies[0]["open_offers"] == 1


def test_cancel_leave_withdraws_open_offers(client, make_teacher, make_period, make_leave, auth_headers):
    admin, absent = _setup_staff(make_teacher, make_period)
    candidate = make_teacher("Candidate")
    leave = make_leave(absent)
    created = client.post(
        f"/api/leaves/{leave.id}/substitute-offers",
        json={"date": "2030-01-07", "period_number": 3, "candidate_ids": [candidate.id]},
        headers=auth_headers(admin),
    )
    offer_id = created.json()[0]["id"]

    forbidden = client.post(f"/api/leaves/{leave.id}/cancel", headers=auth_headers(candidate))
    cancelled = client.post(f"/api/leaves/{leave.id}/cancel", headers=auth_headers(absent))

    assert forbidden.status_code == 403
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    offers = client.get("/api/substitutions/offers", headers=auth_headers(candidate)).json()
    assert [(item["id"], item["status"]) for item in offers] == [(offer_id, "cancelled")]
    assert client.post(f"/api/leaves/{leave.id}/cancel", headers=auth_headers(absent)).status_code == 409
