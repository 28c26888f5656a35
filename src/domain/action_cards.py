from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import ValidationError

from src.models.action_cards import ActionCard, CampaignAction, ListAction, UnsupportedAction


_LIST_TYPES = {"list", "lists"}
_CAMPAIGN_TYPES = {"outbound_campaign", "outbound-campaign", "campaign"}

CardT = TypeVar("CardT", ListAction, CampaignAction)


def load_metadata(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)) and raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _card_type(card: dict[str, Any]) -> str | None:
    explicit = card.get("type")
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip().lower()
    selected_app = card.get("selectedApp")
    if not isinstance(selected_app, dict):
        return None
    names = [
        str(value).strip().lower()
        for value in (selected_app.get("id"), selected_app.get("name"))
        if value not in (None, "")
    ]
    for name in names:
        if name in _LIST_TYPES or name in _CAMPAIGN_TYPES:
            return name
    return names[0] if names else None


def _list_target(card: dict[str, Any], config: dict[str, Any]) -> Any:
    for candidate in (
        config.get("list_id"),
        config.get("listId"),
        card.get("selectedList"),
        card.get("selectedListId"),
    ):
        if isinstance(candidate, dict):
            candidate = candidate.get("id")
        if candidate not in (None, ""):
            return candidate
    return None


def decode_action_card(card: Any) -> ActionCard:
    """Decode one stored card into its typed variant; anything unrecognized is a no-op."""
    if not isinstance(card, dict):
        return UnsupportedAction(error="card is not an object")
    card_id = card.get("id")
    card_type = _card_type(card)
    config = card.get("config") or card.get("campaignConfig") or {}
    if not isinstance(config, dict):
        config = {}
    try:
        if card_type in _LIST_TYPES:
            return ListAction(card_id=card_id, list_id=_list_target(card, config))
        if card_type in _CAMPAIGN_TYPES:
            return CampaignAction.model_validate({**config, "card_id": card_id})
    except ValidationError as exc:
        return UnsupportedAction(
            card_id=str(card_id) if card_id is not None else None,
            card_type=card_type,
            error=str(exc.errors()[0].get("msg")) if exc.errors() else "invalid card",
        )
    return UnsupportedAction(card_id=str(card_id) if card_id is not None else None, card_type=card_type)


def decode_action_cards(metadata: Any) -> list[ActionCard]:
    data = load_metadata(metadata)
    cards = data.get("action_cards")
    if cards is None:
        cards = data.get("actionCards")
    if not isinstance(cards, list):
        return []
    return [decode_action_card(card) for card in cards]


def first_card(cards: list[ActionCard], card_class: type[CardT]) -> CardT | None:
    for card in cards:
        if isinstance(card, card_class):
            return card
    return None
