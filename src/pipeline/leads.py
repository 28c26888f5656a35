from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from src.config import settings
from src.db import supabase
from src.domain.action_cards import decode_action_cards, load_metadata
from src.domain.contact_fields import extract_contact_fields, flatten_lead_field_data
from src.models.action_cards import ActionCard, CampaignAction, ListAction
from src.observability import incr_metric, log_event
from src.pipeline import event_log
from src.pipeline.contact_lists import create_or_get_list
from src.pipeline.dispatcher import DispatchOutcome, dispatch_actions
from src.pipeline.lead_resolver import resolve_lead_details
from src.providers.facebook.client import FacebookPageCredentials


LEAD_CHANNEL_ID = "facebook-leadgen"
LEAD_TRIGGER_TYPE = "facebook_lead"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _page_credentials(page_id: str) -> FacebookPageCredentials | None:
    result = supabase.table("facebook_pages").select("user_id, page_id, page_access_token").eq(
        "page_id", page_id
    ).execute()
    if not result.data:
        return None
    row = result.data[0]
    return FacebookPageCredentials(
        user_id=str(row["user_id"]),
        page_id=str(row.get("page_id") or page_id),
        access_token=row.get("page_access_token") or "",
    )


def _upsert_lead(
    *,
    lead_id: str,
    form_id: str | None,
    page_id: str,
    owner_id: str,
    details: dict[str, Any],
) -> dict[str, Any]:
    # campaign_created is left out so a redelivery never resets the gate.
    supabase.table("facebook_leads").upsert(
        {
            "lead_id": lead_id,
            "form_id": form_id,
            "page_id": page_id,
            "user_id": owner_id,
            "lead_data": details.get("field_data") or [],
            "created_time": details.get("created_time"),
            "updated_at": _now_iso(),
        },
        on_conflict="lead_id",
    ).execute()
    stored = supabase.table("facebook_leads").select("*").eq("lead_id", lead_id).execute()
    return stored.data[0] if stored.data else {"lead_id": lead_id, "campaign_created": False}


def _mark_lead_processed(lead_id: str, list_id: str | None) -> None:
    supabase.table("facebook_leads").update(
        {"processed_at": _now_iso(), "list_id": list_id, "updated_at": _now_iso()}
    ).eq("lead_id", lead_id).execute()


def _form_name(form_id: str | None) -> str:
    if form_id:
        result = supabase.table("facebook_lead_forms").select("form_name").eq("form_id", form_id).execute()
        if result.data and result.data[0].get("form_name"):
            return str(result.data[0]["form_name"])
    return "Facebook Lead Form"


def _webhook_targets_form(webhook: dict[str, Any], form_id: str | None) -> bool:
    facebook = load_metadata(webhook.get("metadata")).get("facebook")
    if not isinstance(facebook, dict):
        return True
    target_form = facebook.get("formId") or facebook.get("form_id")
    return not target_form or str(target_form) == str(form_id)


def _fallback_cards(owner_id: str, form_id: str | None) -> list[ActionCard]:
    form_name = _form_name(form_id)
    list_id = create_or_get_list(
        owner_id,
        f"{form_name} - Leads",
        description=f"Leads captured from Facebook form: {form_name}",
    )
    cards: list[ActionCard] = [ListAction(card_id="default-list", list_id=list_id)]
    if settings.default_vapi_phone_number_id and settings.default_vapi_assistant_id:
        cards.append(
            CampaignAction(
                card_id="default-campaign",
                phone_number_id=settings.default_vapi_phone_number_id,
                assistant_id=settings.default_vapi_assistant_id,
                name=f"{form_name} - Lead Follow-up",
            )
        )
    return cards


def lead_action_cards(owner_id: str, form_id: str | None) -> tuple[str | None, list[ActionCard]]:
    """Action cards for a lead: the owner's matching lead webhook, else the default set."""
    result = supabase.table("webhooks").select("webhook_id, metadata").eq("user_id", owner_id).eq(
        "trigger_type", LEAD_TRIGGER_TYPE
    ).eq("status", "active").execute()
    for webhook in result.data or []:
        if _webhook_targets_form(webhook, form_id):
            return str(webhook["webhook_id"]), decode_action_cards(webhook.get("metadata"))
    return None, _fallback_cards(owner_id, form_id)


def process_lead(page_id: str, value: dict[str, Any], request_id: str | None = None) -> DispatchOutcome | None:
    """Run one ``leadgen`` change through storage and its action cards.

    Returns None when the lead is skipped (unknown page, details not found, no email).
    """
    lead_id = str(value.get("leadgen_id") or value.get("lead_id") or "")
    form_id = str(value["form_id"]) if value.get("form_id") else None
    if not lead_id:
        log_event("lead_skipped", level=logging.WARNING, request_id=request_id, reason="missing_lead_id")
        return None

    credentials = _page_credentials(page_id)
    if credentials is None:
        incr_metric("leads.skipped", reason="unknown_page")
        log_event(
            "lead_skipped",
            level=logging.WARNING,
            request_id=request_id,
            reason="unknown_page",
            page_id=page_id,
            lead_id=lead_id,
        )
        return None

    details = resolve_lead_details(lead_id, credentials, request_id=request_id)
    if details is None:
        incr_metric("leads.skipped", reason="lead_not_found")
        log_event("lead_skipped", level=logging.WARNING, request_id=request_id, reason="lead_not_found", lead_id=lead_id)
        return None

    lead = _upsert_lead(
        lead_id=lead_id,
        form_id=form_id,
        page_id=page_id,
        owner_id=credentials.user_id,
        details=details,
    )

    answers = flatten_lead_field_data(details.get("field_data"))
    contact = extract_contact_fields(answers, fuzzy=True)
    if not contact.email:
        incr_metric("leads.skipped", reason="missing_email")
        log_event("lead_skipped", level=logging.WARNING, request_id=request_id, reason="missing_email", lead_id=lead_id)
        return None

    webhook_id, cards = lead_action_cards(credentials.user_id, form_id)
    outcome = dispatch_actions(
        cards=cards,
        owner_id=credentials.user_id,
        contact=contact,
        payload={**answers, "lead_id": lead_id, "form_id": form_id, "page_id": page_id},
        write_policy="dedupe",
        source=LEAD_TRIGGER_TYPE,
        lead=lead,
        request_id=request_id,
    )
    if outcome.status == "completed":
        _mark_lead_processed(lead_id, outcome.list_id)

    incr_metric("leads.processed", status=outcome.status)
    log_event(
        "lead_processed",
        request_id=request_id,
        lead_id=lead_id,
        form_id=form_id,
        webhook_id=webhook_id,
        status=outcome.status,
        reason=outcome.reason,
        list_id=outcome.list_id,
        contact_id=outcome.contact_id,
        campaign_status=outcome.campaign.status if outcome.campaign else None,
    )
    return outcome


def process_lead_delivery(payload: dict[str, Any], request_id: str | None = None) -> int:
    """Process every ``leadgen`` change in a page delivery; returns how many leads completed.

    A failing lead is recorded as an error event and does not stop the rest of the batch.
    """
    if payload.get("object") != "page":
        log_event("lead_delivery_ignored", request_id=request_id, object=payload.get("object"))
        return 0

    entries = payload.get("entry")
    if not isinstance(entries, list):
        log_event("lead_delivery_malformed", level=logging.WARNING, request_id=request_id, field="entry")
        return 0

    completed = 0
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        page_id = str(entry.get("id") or "")
        changes = entry.get("changes")
        if not isinstance(changes, list):
            log_event("lead_delivery_malformed", level=logging.WARNING, request_id=request_id, field="changes")
            continue
        for change in changes:
            if not isinstance(change, dict) or change.get("field") != "leadgen":
                continue
            value = change.get("value") if isinstance(change.get("value"), dict) else {}
            try:
                outcome = process_lead(str(value.get("page_id") or page_id), value, request_id=request_id)
            except Exception as exc:
                incr_metric("leads.failed")
                log_event(
                    "lead_processing_failed",
                    level=logging.ERROR,
                    request_id=request_id,
                    lead_id=value.get("leadgen_id"),
                    error=str(exc),
                )
                event_log.record_dispatch_error(webhook_id=LEAD_CHANNEL_ID, error=exc, request_id=request_id)
                continue
            if outcome is not None and outcome.status == "completed":
                completed += 1
    return completed


def list_failed_campaign_leads(limit: int) -> list[dict[str, Any]]:
    """Leads whose campaign gate is set but which never got a campaign id."""
    result = supabase.table("facebook_leads").select(
        "lead_id, form_id, page_id, user_id, campaign_error, updated_at"
    ).eq("campaign_created", True).is_("campaign_id", "null").execute()
    rows = sorted(result.data or [], key=lambda row: row.get("updated_at") or "", reverse=True)
    return rows[:limit]
