from __future__ import annotations

import hmac
import json
import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from src.config import settings
from src.observability import incr_metric, log_event
from src.pipeline import event_log, leads
from src.routers.webhooks import client_ip, verify_signature_or_raise


router = APIRouter(prefix="/api/webhooks", tags=["lead-ads"])


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


@router.get("/facebook")
async def verify_lead_subscription(request: Request):
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")
    expected = settings.facebook_webhook_verify_token

    if (
        mode == "subscribe"
        and expected
        and token
        and challenge is not None
        and hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
    ):
        log_event("lead_subscription_verified", request_id=_request_id(request))
        return PlainTextResponse(challenge)

    incr_metric("webhook.handshake.rejected", channel="facebook")
    log_event("lead_subscription_rejected", level=logging.WARNING, request_id=_request_id(request), mode=mode)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("/facebook")
async def receive_lead_delivery(request: Request):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("webhook.deliveries.received", channel="facebook")
    verify_signature_or_raise(
        raw_body,
        request.headers.get("X-Hub-Signature-256"),
        settings.facebook_app_secret,
        channel="facebook",
        request_id=req_id,
    )

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    try:
        await run_in_threadpool(
            event_log.persist_inbound_event,
            webhook_id=leads.LEAD_CHANNEL_ID,
            method=request.method,
            headers=dict(request.headers),
            body=payload,
            query=dict(request.query_params),
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except Exception as exc:
        log_event(
            "webhook_event_persist_failed",
            level=logging.ERROR,
            request_id=req_id,
            webhook_id=leads.LEAD_CHANNEL_ID,
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "type": "event_log_persist_failed",
                "webhook_id": leads.LEAD_CHANNEL_ID,
                "message": "Failed to record webhook delivery",
            },
        ) from exc

    try:
        completed = await run_in_threadpool(leads.process_lead_delivery, payload, req_id)
    except Exception as exc:
        incr_metric("leads.delivery_failed")
        log_event(
            "lead_delivery_failed",
            level=logging.ERROR,
            request_id=req_id,
            webhook_id=leads.LEAD_CHANNEL_ID,
            error=str(exc),
        )
        await run_in_threadpool(
            event_log.record_dispatch_error,
            webhook_id=leads.LEAD_CHANNEL_ID,
            error=exc,
            request_id=req_id,
        )
        return PlainTextResponse("OK")
    log_event("lead_delivery_processed", request_id=req_id, leads_completed=completed)
    return PlainTextResponse("OK")
