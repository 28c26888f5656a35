import pytest
from fastapi.testclient import TestClient

from src.main import app


LIST_ID = "6f1c2a3e-5b7d-4c1e-9a2b-000000000001"


def _seed(fake_db, *, status="active", cards=None):
    fake_db.rows("lists").append({"id": LIST_ID, "user_id": "user-1", "list_name": "Inbound", "contacts_count": 0})
    fake_db.rows("webhooks").append(
        {
            "webhook_id": "wh-1",
            "user_id": "user-1",
            "status": status,
            "success_count": 0,
            "metadata": {
                "action_cards": cards
                if cards is not None
                else [{"id": "card-1", "type": "list", "config": {"list_id": LIST_ID}}]
            },
        }
    )


def _events(fake_db, *, is_error=False):
    return [row for row in fake_db.rows("webhook_logs") if row["is_error"] is is_error]


def test_unknown_webhook_returns_404_and_persists_nothing(fake_db):
    client = TestClient(app)

    response = client.post("/api/webhooks/does-not-exist", json={"email": "a@x.com"})

    assert response.status_code == 404
    assert response.json()["detail"]["type"] == "webhook_not_found"
    assert fake_db.rows("webhook_logs") == []


def test_inactive_webhook_returns_404_and_persists_nothing(fake_db):
    _seed(fake_db, status="inactive")
    client = TestClient(app)

    response = client.post("/api/webhooks/wh-1", json={"email": "a@x.com"})

    assert response.status_code == 404
    assert fake_db.rows("webhook_logs") == []
    assert fake_db.rows("contacts") == []


def test_active_webhook_persists_event_and_stores_contact(fake_db):
    _seed(fake_db)
    client = TestClient(app)

    response = client.post(
        "/api/webhooks/wh-1?source=form",
        json={"email": "a@x.com", "phoneNumber": "555-123-4567"},
        headers={"X-Request-ID": "req-123", "User-Agent": "sender/1.0"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["webhook_id"] == "wh-1"
    assert response.headers["X-Request-ID"] == "req-123"

    events = _events(fake_db)
    assert len(events) == 1
    assert events[0]["method"] == "POST"
    assert events[0]["body"] == {"email": "a@x.com", "phoneNumber": "555-123-4567"}
    assert events[0]["query_params"] == {"source": "form"}
    assert events[0]["user_agent"] == "sender/1.0"
    assert events[0]["headers"]["x-request-id"] == "req-123"

    contacts = fake_db.rows("contacts")
    assert len(contacts) == 1
    assert contacts[0]["list_id"] == LIST_ID
    assert contacts[0]["phone_number"] == "+15551234567"
    assert contacts[0]["full_name"] == "a"
    assert fake_db.rows("lists")[0]["contacts_count"] == 1

    webhook = fake_db.rows("webhooks")[0]
    assert webhook["success_count"] == 1
    assert webhook["last_triggered"]


def test_dispatch_failure_still_acknowledges_with_one_event(fake_db):
    _seed(fake_db)
    fake_db.failures.add(("contacts", "insert"))
    client = TestClient(app)

    response = client.post("/api/webhooks/wh-1", json={"email": "a@x.com"})

    assert response.status_code == 200
    assert len(_events(fake_db)) == 1
    errors = _events(fake_db, is_error=True)
    assert len(errors) == 1
    assert errors[0]["method"] == "ERROR"
    assert errors[0]["body"]["source_event_id"] == _events(fake_db)[0]["id"]


def test_unsupported_cards_only_still_acknowledges(fake_db):
    _seed(fake_db, cards=[{"type": "send_sms"}])
    client = TestClient(app)

    response = client.put("/api/webhooks/wh-1", json={"email": "a@x.com"})

    assert response.status_code == 200
    assert len(_events(fake_db)) == 1
    assert fake_db.rows("contacts") == []


def test_event_log_failure_returns_500(fake_db):
    _seed(fake_db)
    fake_db.failures.add(("webhook_logs", "insert"))
    client = TestClient(app)

    response = client.post("/api/webhooks/wh-1", json={"email": "a@x.com"})

    assert response.status_code == 500
    assert response.json()["detail"]["type"] == "event_log_persist_failed"
    assert fake_db.rows("contacts") == []


def test_delivery_counter_failure_does_not_block_dispatch(fake_db):
    _seed(fake_db)
    fake_db.failures.add(("rpc", "record_webhook_delivery"))
    client = TestClient(app)

    response = client.post("/api/webhooks/wh-1", json={"email": "a@x.com"})

    assert response.status_code == 200
    assert len(fake_db.rows("contacts")) == 1


def test_form_encoded_and_raw_bodies_are_captured(fake_db):
    _seed(fake_db)
    client = TestClient(app)

    form_response = client.post(
        "/api/webhooks/wh-1",
        content="email=b%40x.com&phone=5551234567",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    raw_response = client.post(
        "/api/webhooks/wh-1",
        content="not json at all",
        headers={"Content-Type": "text/plain"},
    )

    assert form_response.status_code == 200
    assert raw_response.status_code == 200
    form_event, raw_event = _events(fake_db)
    assert form_event["body"] == {"email": "b@x.com", "phone": "5551234567"}
    assert raw_event["body"] == {}
    assert raw_event["raw_body"] == "not json at all"
    contacts = fake_db.rows("contacts")
    assert [row["email"] for row in contacts] == ["b@x.com", ""]


def test_get_delivery_captures_query(fake_db):
    _seed(fake_db)
    client = TestClient(app)

    response = client.get("/api/webhooks/wh-1", params={"email": "c@x.com"})

    assert response.status_code == 200
    event = _events(fake_db)[0]
    assert event["method"] == "GET"
    assert event["query_params"] == {"email": "c@x.com"}


@pytest.mark.parametrize("method", ["HEAD", "OPTIONS"])
def test_head_and_options_deliveries_are_logged(fake_db, method):
    _seed(fake_db)
    client = TestClient(app)

    response = client.request(method, "/api/webhooks/wh-1")

    assert response.status_code == 200
    events = _events(fake_db)
    assert len(events) == 1
    assert events[0]["method"] == method
