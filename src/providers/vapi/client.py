from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from src.domain.provider_errors import ProviderError


VAPI_API_BASE = "https://api.vapi.ai"


class VapiProviderError(ProviderError):
    """Provider-level exception for Vapi integration failures."""


@dataclass(frozen=True)
class VapiCredentials:
    """Credentials for one owner's Vapi calls. Built per dispatch, never shared."""

    api_key: str
    base_url: str = VAPI_API_BASE
    owner_id: str | None = None


def _headers(api_key: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _request(
    *,
    method: str,
    url: str,
    api_key: str,
    timeout_seconds: float,
    json_payload: dict[str, Any] | None = None,
) -> httpx.Response:
    with httpx.Client(timeout=timeout_seconds) as client:
        return client.request(
            method=method,
            url=url,
            headers=_headers(api_key),
            json=json_payload,
        )


def _request_json(
    method: str,
    path: str,
    credentials: VapiCredentials,
    json_payload: dict[str, Any] | None = None,
    timeout_seconds: float = 12.0,
) -> dict[str, Any]:
    if not credentials.api_key:
        raise VapiProviderError("Missing Vapi API key")

    url = f"{credentials.base_url.rstrip('/')}{path}"
    try:
        response = _request(
            method=method,
            url=url,
            api_key=credentials.api_key,
            timeout_seconds=timeout_seconds,
            json_payload=json_payload,
        )
    except httpx.HTTPError as exc:
        raise VapiProviderError(f"Vapi connectivity error: {exc}", connectivity=True) from exc

    if response.status_code in {401, 403}:
        raise VapiProviderError("Invalid Vapi API key", status_code=response.status_code)
    if response.status_code >= 400:
        raise VapiProviderError(
            f"Vapi API returned HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise VapiProviderError("Vapi returned non-JSON response", status_code=response.status_code) from exc
    if not isinstance(payload, dict):
        raise VapiProviderError("Unexpected Vapi response type", status_code=response.status_code)
    return payload


def create_campaign(
    credentials: VapiCredentials,
    payload: dict[str, Any],
    timeout_seconds: float = 12.0,
) -> dict[str, Any]:
    data = _request_json(
        "POST",
        "/campaign",
        credentials,
        json_payload=payload,
        timeout_seconds=timeout_seconds,
    )
    if not data.get("id"):
        raise VapiProviderError("Unexpected Vapi create campaign response: missing id")
    return data


def get_campaign(
    credentials: VapiCredentials,
    campaign_id: str,
    timeout_seconds: float = 10.0,
) -> dict[str, Any]:
    return _request_json("GET", f"/campaign/{campaign_id}", credentials, timeout_seconds=timeout_seconds)


def update_campaign_status(
    credentials: VapiCredentials,
    campaign_id: str,
    status_value: str,
    timeout_seconds: float = 10.0,
) -> dict[str, Any]:
    return _request_json(
        "PATCH",
        f"/campaign/{campaign_id}",
        credentials,
        json_payload={"status": status_value},
        timeout_seconds=timeout_seconds,
    )
