from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from src.config import settings
from src.domain.action_cards import first_card
from src.domain.contact_fields import ContactFields
from src.domain.normalization import is_uuid, normalize_phone_e164
from src.models.action_cards import ActionCard, CampaignAction, ListAction, UnsupportedAction
from src.observability import incr_metric, log_event
from src.pipeline import campaigns, contact_lists
from src.pipeline.campaigns import CampaignLaunchResult
from src.pipeline.contact_lists import ContactWritePolicy


@dataclass
class DispatchOutcome:
    status: Literal["completed", "stopped"]
    reason: str | None = None
    list_id: str | None = None
    contact_id: str | None = None
    contact_created: bool = False
    campaign: CampaignLaunchResult | None = None
    skipped_cards: list[str] = field(default_factory=list)


def dispatch_actions(
    *,
    cards: list[ActionCard],
    owner_id: str | None,
    contact: ContactFields,
    payload: Any,
    write_policy: ContactWritePolicy,
    source: str,
    lead: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> DispatchOutcome:
    """Run a webhook's action cards for one resolved contact.

    Cards are picked by type, not position: the first list card stores the contact and the
    first campaign card (if any) then launches a campaign for that same contact. Without a
    usable list card nothing runs. Storage errors propagate to the caller.
    """
    skipped = [card.card_type or "unknown" for card in cards if isinstance(card, UnsupportedAction)]
    for card_type in skipped:
        incr_metric("dispatch.card_skipped", card_type=card_type)
    if skipped:
        log_event("dispatch_cards_skipped", request_id=request_id, card_types=skipped, source=source)

    list_action = first_card(cards, ListAction)
    if list_action is None:
        log_event("dispatch_stopped", request_id=request_id, reason="no_list_action", source=source)
        return DispatchOutcome(status="stopped", reason="no_list_action", skipped_cards=skipped)

    # lists.id is a UUID column; any other shape would fail the query itself.
    target = contact_lists.get_list(list_action.list_id, owner_id) if is_uuid(list_action.list_id) else None
    if target is None:
        incr_metric("dispatch.invalid_list", source=source)
        log_event(
            "dispatch_stopped",
            level=logging.WARNING,
            request_id=request_id,
            reason="invalid_list_id",
            list_id=list_action.list_id,
            card_id=list_action.card_id,
            source=source,
        )
        return DispatchOutcome(status="stopped", reason="invalid_list_id", skipped_cards=skipped)

    list_id = str(target["id"])
    written = contact_lists.add_contact(
        list_id=list_id,
        contact=contact,
        payload=payload,
        policy=write_policy,
        source=source,
        phone_number=normalize_phone_e164(contact.phone_number, settings.default_calling_country_code),
        request_id=request_id,
    )

    campaign_result = None
    campaign_action = first_card(cards, CampaignAction)
    if campaign_action is not None:
        campaign_result = campaigns.launch_campaign(
            action=campaign_action,
            contact=contact,
            owner_id=owner_id,
            lead=lead,
            request_id=request_id,
        )

    return DispatchOutcome(
        status="completed",
        list_id=list_id,
        contact_id=written.contact_id,
        contact_created=written.created,
        campaign=campaign_result,
        skipped_cards=skipped,
    )
