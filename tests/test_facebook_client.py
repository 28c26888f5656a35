from __future__ import annotations

import pytest

from src.providers.facebook import client as facebook_client
from src.providers.facebook.client import FacebookPageCredentials, FacebookProviderError


CREDENTIALS = FacebookPageCredentials(user_id="user-1", page_id="page-1", access_token="page-token")


class _FakeResponse:
    def __init__(self, status_code: int, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload


def _install(monkeypatch, response):
    calls = []

    def _fake_request(**kwargs):
        calls.append(kwargs)
        return response

    monkeypatch.setattr(facebook_client, "_request", _fake_request)
    return calls


def test_fetch_lead_requests_field_data_with_page_token(monkeypatch):
    calls = _install(monkeypatch, _FakeResponse(200, {"id": "lead-1", "field_data": []}))

    lead = facebook_client.fetch_lead(CREDENTIALS, "lead-1", graph_base="https://graph.example/", graph_version="v19.0")

    assert lead == {"id": "lead-1", "field_data": []}
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"] == "https://graph.example/v19.0/lead-1"
    assert calls[0]["params"] == {"access_token": "page-token", "fields": "id,created_time,field_data"}


def test_fetch_lead_rejects_unexpected_shape(monkeypatch):
    _install(monkeypatch, _FakeResponse(200, {"id": "lead-1"}))

    with pytest.raises(FacebookProviderError, match="Unexpected"):
        facebook_client.fetch_lead(CREDENTIALS, "lead-1")


def test_fetch_lead_maps_http_errors(monkeypatch):
    _install(monkeypatch, _FakeResponse(403, {"error": {"message": "expired"}}))
    with pytest.raises(FacebookProviderError) as denied:
        facebook_client.fetch_lead(CREDENTIALS, "lead-1")

    _install(monkeypatch, _FakeResponse(429, {"error": {"message": "slow down"}}))
    with pytest.raises(FacebookProviderError) as throttled:
        facebook_client.fetch_lead(CREDENTIALS, "lead-1")

    assert denied.value.status_code == 403
    assert denied.value.category == "terminal"
    assert throttled.value.category == "transient"


def test_fetch_lead_without_token_never_calls_api(monkeypatch):
    calls = _install(monkeypatch, _FakeResponse(200, {"field_data": []}))

    with pytest.raises(FacebookProviderError):
        facebook_client.fetch_lead(FacebookPageCredentials(user_id="u", page_id="p", access_token=""), "lead-1")
    assert calls == []
