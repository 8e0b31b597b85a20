def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["status"] == "ok"

    ready = client.get("/api/health/ready")
    assert ready.status_code == 200
    payload = ready.json()
    assert payload["database"]["schema_ok"] is True
    assert payload["substitutions"]["auto_dispatch_on_approval"] is False
    assert payload["substitutions"]["open_offers"] == 0


def test_request_id_header_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"


def test_oversized_request_bodies_are_refused(client):
    response = client.post(
        "/api/leaves",
        content=b"x" * 1_000_001,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 413
    assert response.json() == {"detail": "Request body exceeds 1000000 bytes."}
