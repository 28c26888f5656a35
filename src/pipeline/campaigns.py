from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from src.config import settings
from src.db import supabase
from src.domain.contact_fields import ContactFields
from src.domain.normalization import is_uuid, normalize_campaign_status, normalize_phone_e164
from src.domain.provider_errors import provider_error_detail
from src.models.action_cards import CampaignAction
from src.observability import incr_metric, log_event
from src.providers.vapi import client as vapi_client
from src.providers.vapi.client import VapiCredentials, VapiProviderError


LaunchStatus = Literal["created", "already_created", "skipped", "failed"]


@dataclass
class CampaignLaunchResult:
    status: LaunchStatus
    campaign_id: str | None = None
    reason: str | None = None
    launched: bool = False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def vapi_credentials_for_owner(owner_id: str | None) -> VapiCredentials | None:
    api_key: str | None = None
    if owner_id:
        result = supabase.table("user_provider_credentials").select("api_key").eq(
            "user_id", owner_id
        ).eq("provider_slug", "vapi").execute()
        if result.data:
            api_key = result.data[0].get("api_key")
    api_key = api_key or settings.vapi_secret_key
    if not api_key:
        return None
    return VapiCredentials(api_key=api_key, base_url=settings.vapi_api_base, owner_id=owner_id)


def resolve_assistant_id(assistant_id: str | None) -> str | None:
    """Map a local assistant reference onto the provider's assistant UUID."""
    if not assistant_id:
        return None
    value = str(assistant_id).strip()
    if is_uuid(value):
        return value
    if value.isdigit():
        by_local_id = supabase.table("assistants").select("assistant_id").eq("id", int(value)).execute()
        if by_local_id.data and by_local_id.data[0].get("assistant_id"):
            return by_local_id.data[0]["assistant_id"]
    by_provider_id = supabase.table("assistants").select("assistant_id").eq("assistant_id", value).execute()
    if by_provider_id.data and by_provider_id.data[0].get("assistant_id"):
        return by_provider_id.data[0]["assistant_id"]
    return None


def build_customer(contact: ContactFields) -> dict[str, Any] | None:
    number = normalize_phone_e164(contact.phone_number, settings.default_calling_country_code)
    if not number:
        return None
    customer: dict[str, Any] = {
        "name": contact.full_name or contact.email or "Lead",
        "number": number,
    }
    if contact.email:
        customer["email"] = contact.email
    return customer


def _claim_lead_campaign(lead_id: str) -> bool:
    """Flip ``campaign_created`` false -> true in one conditional UPDATE.

    Returns True only for the caller whose update matched the row, so concurrent
    deliveries of the same lead cannot both proceed to create a campaign.
    """
    result = supabase.table("facebook_leads").update(
        {"campaign_created": True, "updated_at": _now_iso()}
    ).eq("lead_id", lead_id).eq("campaign_created", False).execute()
    return bool(result.data)


def _record_campaign_created(lead_id: str, campaign_id: str, status_value: str | None) -> None:
    supabase.table("facebook_leads").update(
        {
            "campaign_id": campaign_id,
            "campaign_status": normalize_campaign_status(status_value),
            "campaign_error": None,
            "updated_at": _now_iso(),
        }
    ).eq("lead_id", lead_id).execute()


def _record_campaign_failure(lead_id: str, error: str) -> None:
    # The gate stays set; replaying this lead is a manual decision.
    supabase.table("facebook_leads").update(
        {"campaign_error": error[:500], "updated_at": _now_iso()}
    ).eq("lead_id", lead_id).execute()


def _auto_launch(credentials: VapiCredentials, campaign_id: str, request_id: str | None) -> bool:
    try:
        time.sleep(settings.campaign_auto_launch_delay_seconds)
        current = vapi_client.get_campaign(credentials, campaign_id, timeout_seconds=settings.vapi_timeout_seconds)
        current_status = current.get("status")
        if current_status != "scheduled":
            log_event(
                "campaign_auto_launch_skipped",
                request_id=request_id,
                campaign_id=campaign_id,
                campaign_status=current_status,
            )
            return False
        launched = vapi_client.update_campaign_status(
            credentials,
            campaign_id,
            "in-progress",
            timeout_seconds=settings.vapi_timeout_seconds,
        )
    except Exception as exc:
        incr_metric("campaigns.auto_launch.failed")
        log_event(
            "campaign_auto_launch_failed",
            level=logging.WARNING,
            request_id=request_id,
            campaign_id=campaign_id,
            error=str(exc),
        )
        return False
    incr_metric("campaigns.auto_launch.succeeded")
    log_event(
        "campaign_auto_launched",
        request_id=request_id,
        campaign_id=campaign_id,
        campaign_status=launched.get("status"),
    )
    return True


def _skip(reason: str, *, request_id: str | None, lead_id: str | None, card_id: str | None) -> CampaignLaunchResult:
    incr_metric("campaigns.skipped", reason=reason)
    log_event(
        "campaign_launch_skipped",
        level=logging.WARNING,
        request_id=request_id,
        reason=reason,
        lead_id=lead_id,
        card_id=card_id,
    )
    return CampaignLaunchResult(status="skipped", reason=reason)


def launch_campaign(
    *,
    action: CampaignAction,
    contact: ContactFields,
    owner_id: str | None,
    lead: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> CampaignLaunchResult:
    """Create a one-customer outbound campaign for a resolved contact.

    With a ``lead`` the campaign is created at most once per lead id. Validation and
    provider failures are logged and reported in the result, never raised.
    """
    lead_id = str(lead["lead_id"]) if lead else None
    if lead and lead.get("campaign_created"):
        log_event(
            "campaign_already_created",
            request_id=request_id,
            lead_id=lead_id,
            campaign_id=lead.get("campaign_id"),
        )
        return CampaignLaunchResult(status="already_created", campaign_id=lead.get("campaign_id"))

    if not action.phone_number_id:
        return _skip("missing_phone_number_id", request_id=request_id, lead_id=lead_id, card_id=action.card_id)
    assistant_id = resolve_assistant_id(action.assistant_id)
    if not assistant_id and not action.workflow_id:
        return _skip("missing_assistant_or_workflow", request_id=request_id, lead_id=lead_id, card_id=action.card_id)
    customer = build_customer(contact)
    if customer is None:
        return _skip("missing_customer_phone", request_id=request_id, lead_id=lead_id, card_id=action.card_id)
    credentials = vapi_credentials_for_owner(owner_id)
    if credentials is None:
        return _skip("missing_vapi_credentials", request_id=request_id, lead_id=lead_id, card_id=action.card_id)

    if lead_id and not _claim_lead_campaign(lead_id):
        incr_metric("campaigns.gate_lost")
        log_event("campaign_gate_already_claimed", request_id=request_id, lead_id=lead_id)
        return CampaignLaunchResult(status="already_created")

    campaign_payload: dict[str, Any] = {
        "name": action.name or f"Webhook Campaign - {datetime.now(timezone.utc).date().isoformat()}",
        "phoneNumberId": action.phone_number_id,
        "customers": [customer],
    }
    if assistant_id:
        campaign_payload["assistantId"] = assistant_id
    if action.workflow_id:
        campaign_payload["workflowId"] = action.workflow_id

    try:
        created = vapi_client.create_campaign(
            credentials,
            campaign_payload,
            timeout_seconds=settings.vapi_timeout_seconds,
        )
    except VapiProviderError as exc:
        incr_metric("campaigns.create.failed", category=exc.category)
        log_event(
            "campaign_create_failed",
            level=logging.ERROR,
            request_id=request_id,
            lead_id=lead_id,
            **provider_error_detail(provider="vapi", operation="create_campaign", exc=exc),
        )
        if lead_id:
            _record_campaign_failure(lead_id, str(exc))
        return CampaignLaunchResult(status="failed", reason=str(exc))

    campaign_id = str(created["id"])
    if lead_id:
        _record_campaign_created(lead_id, campaign_id, created.get("status"))
    incr_metric("campaigns.created")
    log_event(
        "campaign_created",
        request_id=request_id,
        lead_id=lead_id,
        campaign_id=campaign_id,
        campaign_status=created.get("status"),
        auto_launch=action.auto_launch,
    )

    launched = _auto_launch(credentials, campaign_id, request_id) if action.auto_launch else False
    return CampaignLaunchResult(status="created", campaign_id=campaign_id, launched=launched)
