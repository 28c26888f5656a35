#!/usr/bin/env python3
"""
Seed a sample generic webhook with a list card and an optional campaign card.

Reads SEED_USER_ID, SEED_LIST_NAME and (optionally) SEED_PHONE_NUMBER_ID / SEED_ASSISTANT_ID from .env.
Run from project root: python scripts/seed_webhook.py
"""

import os
import sys
import uuid

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from dotenv import load_dotenv
load_dotenv(os.path.join(project_root, ".env"))

from src.db import supabase
from src.pipeline.contact_lists import create_or_get_list


def main():
    user_id = os.getenv("SEED_USER_ID")
    if not user_id:
        print("Error: SEED_USER_ID must be set in .env")
        sys.exit(1)

    list_name = os.getenv("SEED_LIST_NAME") or "Webhook Leads"
    list_id = create_or_get_list(user_id, list_name, description="Contacts received through the sample webhook")

    action_cards = [{"id": "card-list", "type": "list", "config": {"list_id": list_id}}]
    phone_number_id = os.getenv("SEED_PHONE_NUMBER_ID")
    assistant_id = os.getenv("SEED_ASSISTANT_ID")
    if phone_number_id and assistant_id:
        action_cards.append(
            {
                "id": "card-campaign",
                "type": "outbound_campaign",
                "config": {
                    "phoneNumberId": phone_number_id,
                    "assistantId": assistant_id,
                    "autoLaunch": True,
                },
            }
        )

    webhook_id = f"wh_{uuid.uuid4().hex[:16]}"
    result = supabase.table("webhooks").insert({
        "webhook_id": webhook_id,
        "user_id": user_id,
        "name": "Sample webhook",
        "trigger_type": "generic",
        "status": "active",
        "metadata": {"action_cards": action_cards},
    }).execute()

    if result.data:
        print("Created webhook:")
        print(f"  Webhook ID: {webhook_id}")
        print(f"  List ID: {list_id}")
        print(f"  Cards: {[card['type'] for card in action_cards]}")
        print(f"  Endpoint: /api/webhooks/{webhook_id}")
    else:
        print("Error: Failed to create webhook")
        sys.exit(1)


if __name__ == "__main__":
    main()
