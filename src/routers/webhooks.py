from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from src.domain.signatures import verify_signature
from src.models.webhooks import WebhookAck
from src.observability import incr_metric, log_event
from src.pipeline import deliveries, event_log


router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
_CAPTURED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def parse_body(raw_body: bytes, content_type: str | None) -> tuple[Any, str | None]:
    """Decode a delivery body; returns ``(body, raw_text)`` where raw_text is set only when undecodable."""
    if not raw_body:
        return {}, None
    text = raw_body.decode("utf-8", errors="replace")
    if content_type and "application/x-www-form-urlencoded" in content_type.lower():
        return dict(parse_qsl(text, keep_blank_values=True)), None
    try:
        return json.loads(text), None
    except ValueError:
        return {}, text


def verify_signature_or_raise(
    raw_body: bytes,
    signature: str | None,
    secret: str | None,
    *,
    channel: str,
    request_id: str | None,
) -> None:
    if signature and not secret:
        # No secret configured, so the signature cannot be checked.
        log_event("webhook_signature_unchecked", level=logging.WARNING, request_id=request_id, channel=channel)
    if not verify_signature(raw_body, signature, secret):
        incr_metric("webhook.signature.rejected", channel=channel)
        log_event("webhook_signature_rejected", level=logging.WARNING, request_id=request_id, channel=channel)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "type": "webhook_signature_invalid",
                "channel": channel,
                "reason": "signature_mismatch",
                "message": "Unauthorized",
            },
        )


@router.api_route("/{webhook_id}", methods=_CAPTURED_METHODS, response_model=WebhookAck)
async def receive_webhook(webhook_id: str, request: Request):
    req_id = _request_id(request)
    raw_body = await request.body()
    incr_metric("webhook.deliveries.received", method=request.method)

    webhook = await run_in_threadpool(deliveries.get_active_webhook, webhook_id)
    if webhook is None:
        incr_metric("webhook.deliveries.rejected", reason="not_found")
        log_event("webhook_not_found", level=logging.WARNING, request_id=req_id, webhook_id=webhook_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "type": "webhook_not_found",
                "webhook_id": webhook_id,
                "message": "Webhook not found or inactive",
            },
        )

    body, raw_text = parse_body(raw_body, request.headers.get("content-type"))
    try:
        event = await run_in_threadpool(
            event_log.persist_inbound_event,
            webhook_id=webhook_id,
            method=request.method,
            headers=dict(request.headers),
            body=body,
            query=dict(request.query_params),
            raw_body=raw_text,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except Exception as exc:
        incr_metric("webhook.deliveries.failed", reason="event_log_persist_failed")
        log_event(
            "webhook_event_persist_failed",
            level=logging.ERROR,
            request_id=req_id,
            webhook_id=webhook_id,
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "type": "event_log_persist_failed",
                "webhook_id": webhook_id,
                "message": "Failed to record webhook delivery",
            },
        ) from exc

    log_event(
        "webhook_received",
        request_id=req_id,
        webhook_id=webhook_id,
        event_id=event.get("id"),
        method=request.method,
    )
    await run_in_threadpool(deliveries.record_delivery, webhook_id, req_id)
    await run_in_threadpool(
        deliveries.run_dispatch,
        webhook,
        body,
        source_event_id=str(event["id"]) if event.get("id") is not None else None,
        request_id=req_id,
    )

    return WebhookAck(
        message="Webhook received successfully",
        webhook_id=webhook_id,
        timestamp=datetime.now(timezone.utc),
    )
