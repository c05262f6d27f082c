from __future__ import annotations


def test_preserves_incoming_request_id_header(client):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id(client):
    resp = client.get("/Zzzzzzz", headers={"X-Request-ID": "trace-me"})

    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == "trace-me"
    assert resp.json()["error"]["request_id"] == "trace-me"
