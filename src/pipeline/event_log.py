from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from src.db import supabase
from src.observability import incr_metric, log_event


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def persist_inbound_event(
    *,
    webhook_id: str,
    method: str,
    headers: dict[str, Any],
    body: Any,
    query: dict[str, Any],
    raw_body: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> dict[str, Any]:
    """Append one delivery to the raw-event log. Errors propagate to the caller."""
    result = supabase.table("webhook_logs").insert(
        {
            "webhook_id": webhook_id,
            "method": method,
            "headers": headers,
            "body": body,
            "raw_body": raw_body,
            "query_params": query,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "is_error": False,
            "received_at": _now_iso(),
        }
    ).execute()
    incr_metric("events.persisted", webhook_id=webhook_id)
    return result.data[0] if result.data else {}


def record_dispatch_error(
    *,
    webhook_id: str,
    error: Exception,
    source_event_id: str | None = None,
    request_id: str | None = None,
) -> None:
    """Log a failed dispatch as a secondary error event; never raises."""
    try:
        supabase.table("webhook_logs").insert(
            {
                "webhook_id": webhook_id,
                "method": "ERROR",
                "headers": {"error": "processing_error"},
                "body": {
                    "error": str(error),
                    "error_type": type(error).__name__,
                    "source_event_id": source_event_id,
                    "request_id": request_id,
                },
                "query_params": {},
                "is_error": True,
                "received_at": _now_iso(),
            }
        ).execute()
    except Exception as exc:
        log_event(
            "dispatch_error_persist_failed",
            level=logging.ERROR,
            request_id=request_id,
            webhook_id=webhook_id,
            source_event_id=source_event_id,
            error=str(exc),
        )
        return
    incr_metric("events.dispatch_error_recorded", webhook_id=webhook_id)


def get_inbound_event(webhook_id: str, event_id: str) -> dict[str, Any] | None:
    result = supabase.table("webhook_logs").select("*").eq("webhook_id", webhook_id).eq("id", event_id).execute()
    if not result.data:
        return None
    return result.data[0]


def list_inbound_events(webhook_id: str, limit: int) -> list[dict[str, Any]]:
    result = (
        supabase.table("webhook_logs")
        .select("id, webhook_id, method, body, is_error, received_at")
        .eq("webhook_id", webhook_id)
        .execute()
    )
    rows = result.data or []
    rows = sorted(rows, key=lambda row: row.get("received_at") or "", reverse=True)
    return rows[:limit]
