from __future__ import annotations

import logging
from typing import Any

from src.config import settings
from src.domain.provider_errors import provider_error_detail
from src.observability import incr_metric, log_event
from src.pipeline.lead_fixtures import get_test_lead_data, is_test_lead_id
from src.providers.facebook.client import FacebookPageCredentials, FacebookProviderError, fetch_lead


def resolve_lead_details(
    lead_id: str,
    credentials: FacebookPageCredentials,
    request_id: str | None = None,
) -> dict[str, Any] | None:
    """Full answers for a lead id, or None when neither the Graph API nor a fixture has them.

    Test-pattern ids fall back to the fixture store only after the API call fails.
    """
    try:
        details = fetch_lead(
            credentials,
            lead_id,
            graph_base=settings.facebook_graph_base,
            graph_version=settings.facebook_graph_version,
            timeout_seconds=settings.facebook_timeout_seconds,
        )
    except FacebookProviderError as exc:
        incr_metric("leads.fetch.failed", category=exc.category)
        log_event(
            "lead_detail_fetch_failed",
            level=logging.WARNING,
            request_id=request_id,
            lead_id=lead_id,
            page_id=credentials.page_id,
            **provider_error_detail(provider="facebook", operation="fetch_lead", exc=exc),
        )
    else:
        incr_metric("leads.fetch.succeeded", source="graph_api")
        return details

    if not is_test_lead_id(lead_id):
        return None
    fixture = get_test_lead_data(lead_id)
    if fixture is None:
        log_event("test_lead_fixture_missing", level=logging.WARNING, request_id=request_id, lead_id=lead_id)
        return None
    incr_metric("leads.fetch.succeeded", source="test_fixture")
    log_event("test_lead_fixture_used", request_id=request_id, lead_id=lead_id)
    return fixture
