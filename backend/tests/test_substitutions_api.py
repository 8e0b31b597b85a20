from datetime import date

import pytest

from app.models.teacher import TeacherRole

MONDAY = date(2030, 1, 7)


@pytest.fixture()
def offered(client, make_teacher, make_period, make_leave, auth_headers):
    admin = make_teacher("Admin", subject=None, role=TeacherRole.admin)
    absent = make_teacher("Absent Teacher", subject="Chemistry")
    make_period(absent, "monday", 2, class_name="11-A")
    first = make_teacher("First", subject="Chemistry")
    second = make_teacher("Second", subject="Biology")
    leave = make_leave(absent)
    response = client.post(
        f"/api/leaves/{leave.id}/substitute-offers",
        json={
            "date": MONDAY.isoformat(),
            "period_number": 2,
            "candidate_ids": [first.id, second.id],
            "notes": "Lab safety briefing is on the desk",
        },
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    offers = {item["substitute_teacher_id"]: item["id"] for item in response.json()}
    return {
        "admin": admin,
        "absent": absent,
        "first": first,
        "second": second,
        "leave": leave,
        "offers": offers,
    }


def test_accept_over_http_closes_siblings(client, offered, auth_headers):
    first, second = offered["first"], offered["second"]

    accepted = client.post(
        f"/api/substitutions/offers/{offered['offers'][first.id]}/respond",
        json={"decision": "accept"},
        headers=auth_headers(first),
    )
    late = client.post(
        f"/api/substitutions/offers/{offered['offers'][second.id]}/respond",
        json={"decision": "accept"},
        headers=auth_headers(second),
    )

    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert late.status_code == 409
    assert late.json()["detail"]["code"] == "already_resolved"

    leave = client.get(f"/api/leaves/{offered['leave'].id}", headers=auth_headers(offered["admin"])).json()
    assert leave["final_substitute_id"] == first.id

    absent_inbox = client.get("/api/notifications", headers=auth_headers(offered["absent"])).json()
    assert any("First accepted" in item["message"] for item in absent_inbox)
    second_inbox = client.get("/api/notifications", headers=auth_headers(second)).json()
    assert {item["event_type"] for item in second_inbox} == {"substitution.auto_declined", "substitution.requested"}


def test_respond_errors_map_to_status_codes(client, offered, auth_headers):
    first, second = offered["first"], offered["second"]
    offer_id = offered["offers"][first.id]

    missing = client.post(
        "/api/substitutions/offers/does-not-exist/respond",
        json={"decision": "accept"},
        headers=auth_headers(first),
    )
    wrong = client.post(
        f"/api/substitutions/offers/{offer_id}/respond",
        json={"decision": "accept"},
        headers=auth_headers(second),
    )
    no_reason = client.post(
        f"/api/substitutions/offers/{offer_id}/respond",
        json={"decision": "reject"},
        headers=auth_headers(first),
    )
    admin_attempt = client.post(
        f"/api/substitutions/offers/{offer_id}/respond",
        json={"decision": "accept"},
        headers=auth_headers(offered["admin"]),
    )
    bad_decision = client.post(
        f"/api/substitutions/offers/{offer_id}/respond",
        json={"decision": "maybe"},
        headers=auth_headers(first),
    )

    assert missing.status_code == 404
    assert wrong.status_code == 403
    assert no_reason.status_code == 400
    assert admin_attempt.status_code == 403
    assert bad_decision.status_code == 422


def test_reject_then_complete_and_cancel(client, offered, auth_headers):
    admin, first, second = offered["admin"], offered["first"], offered["second"]

    rejected = client.post(
        f"/api/substitutions/offers/{offered['offers'][second.id]}/respond",
        json={"decision": "reject", "rejection_reason": "Taking 12-B for revision"},
        headers=auth_headers(second),
    )
    assert rejected.json()["rejection_reason"] == "Taking 12-B for revision"

    winner_id = offered["offers"][first.id]
    early_complete = client.post(f"/api/substitutions/offers/{winner_id}/complete", headers=auth_headers(admin))
    assert early_complete.status_code == 409

    client.post(
        f"/api/substitutions/offers/{winner_id}/respond",
        json={"decision": "accept"},
        headers=auth_headers(first),
    )
    completed = client.post(f"/api/substitutions/offers/{winner_id}/complete", headers=auth_headers(admin))
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    cancelled = client.delete(f"/api/substitutions/offers/{winner_id}", headers=auth_headers(admin))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert client.delete("/api/substitutions/offers/unknown", headers=auth_headers(admin)).status_code == 404


def test_offer_listing_scopes(client, offered, auth_headers):
    admin, first = offered["admin"], offered["first"]

    everything = client.get(
        "/api/substitutions/offers",
        params={"leave_request_id": offered["leave"].id},
        headers=auth_headers(admin),
    ).json()
    mine = client.get("/api/substitutions/offers", headers=auth_headers(first)).json()
    accepted_only = client.get("/api/substitutions/offers", params={"status": "accepted"}, headers=auth_headers(admin))

    assert len(everything) == 2
    assert [item["substitute_teacher_id"] for item in mine] == [first.id]
    assert accepted_only.json() == []


def test_create_offer_conflicts_over_http(client, offered, make_teacher, auth_headers):
    admin, first = offered["admin"], offered["first"]
    client.post(
        f"/api/substitutions/offers/{offered['offers'][first.id]}/respond",
        json={"decision": "accept"},
        headers=auth_headers(first),
    )
    newcomer = make_teacher("Newcomer", subject="Chemistry")

    response = client.post(
        f"/api/leaves/{offered['leave'].id}/substitute-offers",
        json={"date": MONDAY.isoformat(), "period_number": 2, "candidate_ids": [newcomer.id]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "conflict_lost"


def test_expire_endpoint_without_expiry_configured(client, offered, auth_headers):
    response = client.post("/api/substitutions/offers/expire", headers=auth_headers(offered["admin"]))
    assert response.status_code == 200
    assert response.json() == {"expired": 0}
    assert client.post("/api/substitutions/offers/expire", headers=auth_headers(offered["first"])).status_code == 403


def test_recommendations_endpoint(client, make_teacher, auth_headers):
    admin = make_teacher("Admin", role=TeacherRole.admin)
    make_teacher("Maths Teacher", subject="Mathematics")
    make_teacher("Stats Teacher", subject="Statistics")

    response = client.get(
        "/api/substitutions/recommendations",
        params={"subject": "Mathematics", "day": "mon", "period_number": 1, "date": MONDAY.isoformat()},
        headers=auth_headers(admin),
    )
    invalid = client.get(
        "/api/substitutions/recommendations",
        params={"subject": "Mathematics", "day": "friday", "period_number": 1, "date": MONDAY.isoformat()},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert [item["scores"]["subject"] for item in response.json()] == [1.0, 0.7]
    assert invalid.status_code == 422
    assert "date" in invalid.json()["details"]
