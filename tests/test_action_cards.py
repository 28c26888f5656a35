import json

from src.domain.action_cards import decode_action_card, decode_action_cards, first_card
from src.models.action_cards import CampaignAction, ListAction, UnsupportedAction


def test_canonical_cards_decode_by_type():
    cards = decode_action_cards(
        {
            "action_cards": [
                {"id": "c1", "type": "outbound_campaign", "config": {"phoneNumberId": "pn-1", "assistantId": "as-1", "autoLaunch": True}},
                {"id": "c2", "type": "list", "config": {"list_id": "list-1"}},
            ]
        }
    )
    assert isinstance(cards[0], CampaignAction)
    assert cards[0].phone_number_id == "pn-1"
    assert cards[0].assistant_id == "as-1"
    assert cards[0].auto_launch is True
    assert isinstance(cards[1], ListAction)
    assert cards[1].list_id == "list-1"


def test_builder_shape_cards_decode():
    metadata = json.dumps(
        {
            "actionCards": [
                {"id": 7, "selectedApp": {"id": "lists", "name": "Lists"}, "selectedList": {"id": 42}},
                {
                    "id": 8,
                    "selectedApp": {"name": "Outbound Campaign", "id": "outbound_campaign"},
                    "campaignConfig": {"phoneNumberId": "pn-9", "workflowId": "wf-1", "autoLaunch": None},
                },
            ]
        }
    )
    cards = decode_action_cards(metadata)
    assert cards[0] == ListAction(card_id="7", list_id="42")
    assert isinstance(cards[1], CampaignAction)
    assert cards[1].workflow_id == "wf-1"
    assert cards[1].auto_launch is False


def test_unknown_and_malformed_cards_are_unsupported():
    assert isinstance(decode_action_card({"id": "x", "type": "send_sms"}), UnsupportedAction)
    assert decode_action_card({"id": "x", "type": "send_sms"}).card_type == "send_sms"
    assert isinstance(decode_action_card("not-a-card"), UnsupportedAction)
    invalid = decode_action_card({"id": "x", "type": "campaign", "config": {"autoLaunch": {"nested": 1}}})
    assert isinstance(invalid, UnsupportedAction)
    assert invalid.error


def test_blank_ids_become_none():
    card = decode_action_card({"type": "list", "config": {"list_id": "  "}})
    assert isinstance(card, ListAction)
    assert card.list_id is None


def test_metadata_without_cards_decodes_to_empty_list():
    assert decode_action_cards(None) == []
    assert decode_action_cards("{not json") == []
    assert decode_action_cards({"action_cards": "nope"}) == []


def test_first_card_picks_by_type_not_position():
    cards = decode_action_cards(
        {
            "action_cards": [
                {"type": "webhook_forward"},
                {"type": "campaign", "config": {"phoneNumberId": "pn"}},
                {"type": "list", "config": {"listId": "first"}},
                {"type": "list", "config": {"listId": "second"}},
            ]
        }
    )
    assert first_card(cards, ListAction).list_id == "first"
    assert first_card(cards, CampaignAction).phone_number_id == "pn"
    assert first_card([], ListAction) is None
