from __future__ import annotations

import logging
from typing import Any

from src.config import settings
from src.db import supabase
from src.domain.action_cards import decode_action_cards
from src.domain.contact_fields import extract_contact_fields
from src.observability import incr_metric, log_event
from src.pipeline import event_log
from src.pipeline.contact_lists import CONTACT_WRITE_POLICIES
from src.pipeline.dispatcher import DispatchOutcome, dispatch_actions


def get_active_webhook(webhook_id: str) -> dict[str, Any] | None:
    result = supabase.table("webhooks").select("*").eq("webhook_id", webhook_id).eq("status", "active").execute()
    if not result.data:
        return None
    return result.data[0]


def record_delivery(webhook_id: str, request_id: str | None = None) -> None:
    try:
        # Postgres function: success_count + 1 and last_triggered = now() in one UPDATE.
        supabase.rpc("record_webhook_delivery", {"p_webhook_id": webhook_id}).execute()
    except Exception as exc:
        log_event(
            "webhook_delivery_counter_failed",
            level=logging.WARNING,
            request_id=request_id,
            webhook_id=webhook_id,
            error=str(exc),
        )


def _write_policy() -> str:
    policy = settings.webhook_contact_write_policy
    return policy if policy in CONTACT_WRITE_POLICIES else "append"


def dispatch_webhook_delivery(
    webhook: dict[str, Any],
    body: Any,
    request_id: str | None = None,
) -> DispatchOutcome:
    return dispatch_actions(
        cards=decode_action_cards(webhook.get("metadata")),
        owner_id=webhook.get("user_id"),
        contact=extract_contact_fields(body),
        payload=body,
        write_policy=_write_policy(),
        source="webhook",
        request_id=request_id,
    )


def run_dispatch(
    webhook: dict[str, Any],
    body: Any,
    *,
    source_event_id: str | None,
    request_id: str | None = None,
) -> DispatchOutcome | None:
    """Best-effort dispatch: any failure becomes an error event instead of an exception."""
    webhook_id = str(webhook["webhook_id"])
    try:
        outcome = dispatch_webhook_delivery(webhook, body, request_id=request_id)
    except Exception as exc:
        incr_metric("dispatch.failed", source="webhook")
        log_event(
            "webhook_dispatch_failed",
            level=logging.ERROR,
            request_id=request_id,
            webhook_id=webhook_id,
            source_event_id=source_event_id,
            error=str(exc),
        )
        event_log.record_dispatch_error(
            webhook_id=webhook_id,
            error=exc,
            source_event_id=source_event_id,
            request_id=request_id,
        )
        return None

    incr_metric("dispatch.completed" if outcome.status == "completed" else "dispatch.stopped", source="webhook")
    log_event(
        "webhook_dispatched",
        request_id=request_id,
        webhook_id=webhook_id,
        source_event_id=source_event_id,
        status=outcome.status,
        reason=outcome.reason,
        list_id=outcome.list_id,
        contact_id=outcome.contact_id,
        campaign_status=outcome.campaign.status if outcome.campaign else None,
        campaign_id=outcome.campaign.campaign_id if outcome.campaign else None,
    )
    return outcome
