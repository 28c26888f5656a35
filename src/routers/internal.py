from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from src.auth import InternalCallerContext, get_internal_caller
from src.config import settings
from src.db import supabase
from src.models.webhooks import (
    FailedCampaignLeadItem,
    InboundEventListItem,
    InboundEventReplayResponse,
    LeadFixtureRequest,
    LeadFixtureResponse,
    MetricsSnapshotFlushRequest,
    MetricsSnapshotFlushResponse,
)
from src.observability import incr_metric, log_event, metrics_snapshot, persist_metrics_snapshot
from src.pipeline import deliveries, event_log, leads
from src.pipeline.lead_fixtures import store_test_lead_data


router = APIRouter(prefix="/api/internal", tags=["internal"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


@router.post("/test-leads", response_model=LeadFixtureResponse)
async def create_test_lead(
    data: LeadFixtureRequest,
    request: Request,
    _ctx: InternalCallerContext = Depends(get_internal_caller),
):
    now_ms = int(time.time() * 1000)
    lead_id = f"{settings.test_lead_prefix}{now_ms}"
    expires_at = await run_in_threadpool(store_test_lead_data, lead_id, data.lead_data)
    log_event(
        "test_lead_created",
        request_id=_request_id(request),
        lead_id=lead_id,
        page_id=data.page_id,
        form_id=data.form_id,
        field_count=len(data.lead_data),
    )
    payload = {
        "object": "page",
        "entry": [
            {
                "id": data.page_id,
                "time": now_ms // 1000,
                "changes": [
                    {
                        "field": "leadgen",
                        "value": {
                            "leadgen_id": lead_id,
                            "page_id": data.page_id,
                            "form_id": data.form_id,
                            "created_time": now_ms // 1000,
                        },
                    }
                ],
            }
        ],
    }
    return LeadFixtureResponse(lead_id=lead_id, expires_at=expires_at, payload=payload)


@router.get("/webhooks/{webhook_id}/events", response_model=list[InboundEventListItem])
async def list_webhook_events(
    webhook_id: str,
    request: Request,
    limit: int = 50,
    _ctx: InternalCallerContext = Depends(get_internal_caller),
):
    bounded_limit = max(1, min(limit, 200))
    rows = await run_in_threadpool(event_log.list_inbound_events, webhook_id, bounded_limit)
    log_event(
        "webhook_events_listed",
        request_id=_request_id(request),
        webhook_id=webhook_id,
        returned=len(rows),
        limit=bounded_limit,
    )
    return rows


@router.post("/webhooks/{webhook_id}/events/{event_id}/replay", response_model=InboundEventReplayResponse)
async def replay_webhook_event(
    webhook_id: str,
    event_id: str,
    request: Request,
    _ctx: InternalCallerContext = Depends(get_internal_caller),
):
    req_id = _request_id(request)
    webhook = await run_in_threadpool(deliveries.get_active_webhook, webhook_id)
    if webhook is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found or inactive")
    event_row = await run_in_threadpool(event_log.get_inbound_event, webhook_id, event_id)
    if not event_row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook event not found")
    if event_row.get("is_error"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Error events cannot be replayed")

    incr_metric("webhook.events.replayed", webhook_id=webhook_id)
    log_event("webhook_event_replay_started", request_id=req_id, webhook_id=webhook_id, event_id=event_id)
    outcome = await run_in_threadpool(
        deliveries.run_dispatch,
        webhook,
        event_row.get("body"),
        source_event_id=event_id,
        request_id=req_id,
    )
    if outcome is None:
        return InboundEventReplayResponse(status="failed", webhook_id=webhook_id, event_id=event_id)
    return InboundEventReplayResponse(
        status="replayed",
        webhook_id=webhook_id,
        event_id=event_id,
        dispatch_status=outcome.status,
        reason=outcome.reason,
        list_id=outcome.list_id,
        contact_id=outcome.contact_id,
        campaign_status=outcome.campaign.status if outcome.campaign else None,
        campaign_id=outcome.campaign.campaign_id if outcome.campaign else None,
        campaign_error=outcome.campaign.reason if outcome.campaign and outcome.campaign.status == "failed" else None,
    )


@router.get("/leads/campaign-failures", response_model=list[FailedCampaignLeadItem])
async def list_failed_campaign_leads(
    request: Request,
    limit: int = 50,
    _ctx: InternalCallerContext = Depends(get_internal_caller),
):
    bounded_limit = max(1, min(limit, 200))
    rows = await run_in_threadpool(leads.list_failed_campaign_leads, bounded_limit)
    log_event(
        "failed_campaign_leads_listed",
        request_id=_request_id(request),
        returned=len(rows),
        limit=bounded_limit,
    )
    return rows


@router.post("/observability/metrics-snapshots/flush", response_model=MetricsSnapshotFlushResponse)
async def flush_metrics_snapshot(
    data: MetricsSnapshotFlushRequest,
    request: Request,
    _ctx: InternalCallerContext = Depends(get_internal_caller),
):
    counter_count = len(metrics_snapshot())
    persisted = await run_in_threadpool(
        persist_metrics_snapshot,
        supabase_client=supabase,
        source=data.source,
        request_id=_request_id(request),
        reset_after_persist=data.reset_after_persist,
        export_url=settings.observability_export_url,
        export_bearer_token=settings.observability_export_bearer_token,
        export_timeout_seconds=settings.observability_export_timeout_seconds,
    )
    return MetricsSnapshotFlushResponse(
        persisted=persisted,
        source=data.source,
        counter_count=counter_count,
    )
