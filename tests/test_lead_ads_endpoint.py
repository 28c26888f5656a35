import json

import pytest
from fastapi.testclient import TestClient

from src.domain.signatures import compute_signature
from src.main import app
from src.pipeline import leads
from src.routers import lead_ads as lead_ads_router


def _delivery():
    return {
        "object": "page",
        "entry": [
            {
                "id": "page-1",
                "changes": [{"field": "leadgen", "value": {"leadgen_id": "lead-1", "form_id": "form-1"}}],
            }
        ],
    }


def test_handshake_echoes_challenge_for_matching_token(monkeypatch):
    monkeypatch.setattr(lead_ads_router.settings, "facebook_webhook_verify_token", "verify-me")
    client = TestClient(app)

    response = client.get(
        "/api/webhooks/facebook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
    )

    assert response.status_code == 200
    assert response.text == "1158201444"


def test_handshake_rejects_wrong_token_or_unconfigured(monkeypatch):
    client = TestClient(app)
    params = {"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "123"}

    assert client.get("/api/webhooks/facebook", params=params).status_code == 403

    monkeypatch.setattr(lead_ads_router.settings, "facebook_webhook_verify_token", "something-else")
    assert client.get("/api/webhooks/facebook", params=params).status_code == 403


def test_signed_delivery_is_logged_and_processed(fake_db, monkeypatch):
    monkeypatch.setattr(lead_ads_router.settings, "facebook_app_secret", "app-secret")
    processed = []
    monkeypatch.setattr(leads, "process_lead", lambda page_id, value, request_id=None: processed.append((page_id, value)))
    raw = json.dumps(_delivery()).encode()
    client = TestClient(app)

    response = client.post(
        "/api/webhooks/facebook",
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Hub-Signature-256": f"sha256={compute_signature(raw, 'app-secret')}",
        },
    )

    assert response.status_code == 200
    assert response.text == "OK"
    assert processed == [("page-1", {"leadgen_id": "lead-1", "form_id": "form-1"})]
    events = fake_db.rows("webhook_logs")
    assert len(events) == 1
    assert events[0]["webhook_id"] == leads.LEAD_CHANNEL_ID


def test_tampered_delivery_is_rejected_without_persisting(fake_db, monkeypatch):
    monkeypatch.setattr(lead_ads_router.settings, "facebook_app_secret", "app-secret")
    raw = json.dumps(_delivery()).encode()
    signature = compute_signature(raw, "app-secret")
    client = TestClient(app)

    response = client.post(
        "/api/webhooks/facebook",
        content=raw.replace(b"lead-1", b"lead-2"),
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={signature}"},
    )

    assert response.status_code == 401
    assert fake_db.rows("webhook_logs") == []


def test_unsigned_delivery_passes(fake_db, monkeypatch):
    monkeypatch.setattr(lead_ads_router.settings, "facebook_app_secret", "app-secret")
    client = TestClient(app)

    response = client.post("/api/webhooks/facebook", json={"object": "page", "entry": []})

    assert response.status_code == 200
    assert len(fake_db.rows("webhook_logs")) == 1


def test_lead_failures_do_not_change_acknowledgement(fake_db, monkeypatch):
    def _boom(page_id, value, request_id=None):
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(leads, "process_lead", _boom)
    client = TestClient(app)

    response = client.post("/api/webhooks/facebook", json=_delivery())

    assert response.status_code == 200
    errors = [row for row in fake_db.rows("webhook_logs") if row["is_error"]]
    assert errors[0]["body"]["error_type"] == "RuntimeError"


def test_invalid_json_is_rejected(fake_db):
    client = TestClient(app)

    response = client.post("/api/webhooks/facebook", content=b"{oops", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert fake_db.rows("webhook_logs") == []


@pytest.mark.parametrize(
    "payload",
    [
        {"object": "page", "entry": 5},
        {"object": "page", "entry": [{"id": "page-1", "changes": 7}]},
    ],
)
def test_malformed_entry_shapes_are_acknowledged(fake_db, payload):
    client = TestClient(app)

    response = client.post("/api/webhooks/facebook", json=payload)

    assert response.status_code == 200
    assert response.text == "OK"
    events = fake_db.rows("webhook_logs")
    assert len(events) == 1
    assert events[0]["body"] == payload


def test_unexpected_processing_error_is_recorded_and_acknowledged(fake_db, monkeypatch):
    def _boom(payload, request_id=None):
        raise TypeError("unexpected delivery shape")

    monkeypatch.setattr(leads, "process_lead_delivery", _boom)
    client = TestClient(app)

    response = client.post("/api/webhooks/facebook", json=_delivery())

    assert response.status_code == 200
    assert response.text == "OK"
    errors = [row for row in fake_db.rows("webhook_logs") if row["is_error"]]
    assert len(errors) == 1
    assert errors[0]["webhook_id"] == leads.LEAD_CHANNEL_ID
    assert errors[0]["body"]["error_type"] == "TypeError"
