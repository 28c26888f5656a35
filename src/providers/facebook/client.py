from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.domain.provider_errors import ProviderError


FACEBOOK_GRAPH_BASE = "https://graph.facebook.com"
FACEBOOK_GRAPH_VERSION = "v18.0"
LEAD_FIELDS = "id,created_time,field_data"


class FacebookProviderError(ProviderError):
    """Provider-level exception for Facebook Graph API failures."""


@dataclass(frozen=True)
class FacebookPageCredentials:
    """Page-scoped access for one owner, loaded fresh for each delivery."""

    user_id: str
    page_id: str
    access_token: str


def _request(
    *,
    method: str,
    url: str,
    params: dict[str, Any],
    timeout_seconds: float,
) -> httpx.Response:
    with httpx.Client(timeout=timeout_seconds) as client:
        return client.request(method=method, url=url, params=params)


def fetch_lead(
    credentials: FacebookPageCredentials,
    lead_id: str,
    graph_base: str = FACEBOOK_GRAPH_BASE,
    graph_version: str = FACEBOOK_GRAPH_VERSION,
    timeout_seconds: float = 10.0,
) -> dict[str, Any]:
    if not credentials.access_token:
        raise FacebookProviderError("Missing Facebook page access token")

    url = f"{graph_base.rstrip('/')}/{graph_version}/{lead_id}"
    try:
        response = _request(
            method="GET",
            url=url,
            params={"access_token": credentials.access_token, "fields": LEAD_FIELDS},
            timeout_seconds=timeout_seconds,
        )
    except httpx.HTTPError as exc:
        raise FacebookProviderError(f"Facebook connectivity error: {exc}", connectivity=True) from exc

    if response.status_code in {401, 403}:
        raise FacebookProviderError("Invalid Facebook page access token", status_code=response.status_code)
    if response.status_code >= 400:
        raise FacebookProviderError(
            f"Facebook Graph API returned HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise FacebookProviderError("Facebook returned non-JSON response", status_code=response.status_code) from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("field_data"), list):
        raise FacebookProviderError("Unexpected Facebook lead response shape", status_code=response.status_code)
    return payload
