from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from src.config import settings
from src.models.webhooks import WebhookAck
from src.observability import incr_metric, log_event
from src.pipeline import event_log
from src.routers.webhooks import client_ip, verify_signature_or_raise


router = APIRouter(prefix="/api/webhooks", tags=["voice-events"])
VOICE_CHANNEL_ID = "vapi-server"
VOICE_CLIENT_CHANNEL_ID = "vapi-client"
_KNOWN_MESSAGE_TYPES = {
    "conversation-update",
    "function-call",
    "hang",
    "speech-update",
    "status-update",
    "transcript",
    "tool-calls",
    "transfer-destination-request",
    "user-interrupted",
    "end-of-call-report",
}
_KNOWN_CLIENT_MESSAGE_TYPES = {
    "conversation-update",
    "function-call",
    "hang",
    "model-output",
    "speech-update",
    "status-update",
    "transfer-update",
    "transcript",
    "tool-calls",
    "user-interrupted",
    "voice-input",
}


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _call_id(message: dict[str, Any]) -> str | None:
    call = message.get("call")
    if isinstance(call, dict) and call.get("id") is not None:
        return str(call["id"])
    return None


def _parse_message(raw_body: bytes) -> tuple[dict[str, Any], dict[str, Any]]:
    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else {}
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    message = payload.get("message") if isinstance(payload, dict) else None
    if not isinstance(message, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"type": "invalid_server_message", "reason": "missing_message", "message": "Message is required"},
        )
    return payload, message


async def _log_message(
    request: Request,
    *,
    channel_id: str,
    payload: dict[str, Any],
    message: dict[str, Any],
    known_types: set[str],
) -> WebhookAck:
    req_id = _request_id(request)
    try:
        await run_in_threadpool(
            event_log.persist_inbound_event,
            webhook_id=channel_id,
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
            webhook_id=channel_id,
            error=str(exc),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "type": "event_log_persist_failed",
                "webhook_id": channel_id,
                "message": "Failed to record webhook delivery",
            },
        ) from exc

    message_type = str(message.get("type") or "unknown")
    if message_type not in known_types:
        incr_metric("voice.messages.unknown_type", channel=channel_id)
        log_event(
            "voice_message_unknown_type",
            level=logging.WARNING,
            request_id=req_id,
            channel=channel_id,
            message_type=message_type,
        )
    else:
        incr_metric("voice.messages.received", channel=channel_id, message_type=message_type)
        log_event(
            "voice_message_received",
            request_id=req_id,
            channel=channel_id,
            message_type=message_type,
            call_id=_call_id(message),
            call_status=message.get("status"),
            ended_reason=message.get("endedReason"),
        )

    return WebhookAck(
        message="Webhook processed successfully",
        webhook_id=channel_id,
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/server", response_model=WebhookAck)
async def receive_server_message(request: Request):
    raw_body = await request.body()
    incr_metric("webhook.deliveries.received", channel="vapi")
    verify_signature_or_raise(
        raw_body,
        request.headers.get("X-Vapi-Signature"),
        settings.vapi_webhook_secret,
        channel="vapi",
        request_id=_request_id(request),
    )
    payload, message = _parse_message(raw_body)
    return await _log_message(
        request,
        channel_id=VOICE_CHANNEL_ID,
        payload=payload,
        message=message,
        known_types=_KNOWN_MESSAGE_TYPES,
    )


@router.post("/client", response_model=WebhookAck)
async def receive_client_message(request: Request):
    # Sent by the in-browser call widget, which holds no signing secret.
    raw_body = await request.body()
    incr_metric("webhook.deliveries.received", channel="vapi-client")
    payload, message = _parse_message(raw_body)
    return await _log_message(
        request,
        channel_id=VOICE_CLIENT_CHANNEL_ID,
        payload=payload,
        message=message,
        known_types=_KNOWN_CLIENT_MESSAGE_TYPES,
    )
