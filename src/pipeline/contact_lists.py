from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from src.db import supabase
from src.domain.contact_fields import ContactFields
from src.observability import incr_metric, log_event


ContactWritePolicy = Literal["append", "dedupe"]
CONTACT_WRITE_POLICIES = {"append", "dedupe"}
_FULL_NAME_MAX_LENGTH = 250


@dataclass
class ContactWriteResult:
    contact_id: str | None
    created: bool


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_list(list_id: str, owner_id: str | None) -> dict[str, Any] | None:
    query = supabase.table("lists").select("id, user_id, list_name, contacts_count").eq("id", list_id)
    if owner_id:
        query = query.eq("user_id", owner_id)
    result = query.execute()
    if not result.data:
        return None
    return result.data[0]


def create_or_get_list(owner_id: str, list_name: str, description: str | None = None) -> str:
    existing = supabase.table("lists").select("id").eq("user_id", owner_id).eq("list_name", list_name).execute()
    if existing.data:
        return str(existing.data[0]["id"])

    created = supabase.table("lists").insert(
        {
            "user_id": owner_id,
            "list_name": list_name,
            "list_description": description,
            "type": "Marketing",
            "contacts_count": 0,
            "created_at": _now_iso(),
        }
    ).execute()
    list_id = str(created.data[0]["id"])
    log_event("contact_list_created", owner_id=owner_id, list_id=list_id, list_name=list_name)
    return list_id


def _find_existing_contact(list_id: str, email: str) -> str | None:
    result = supabase.table("contacts").select("id").eq("list_id", list_id).eq("email", email).execute()
    if not result.data:
        return None
    return str(result.data[0]["id"])


def _increment_contacts_count(list_id: str, delta: int = 1) -> None:
    # Single UPDATE in Postgres; a read-modify-write here would lose concurrent appends.
    supabase.rpc(
        "increment_list_contacts_count",
        {"p_list_id": list_id, "p_delta": delta},
    ).execute()


def add_contact(
    *,
    list_id: str,
    contact: ContactFields,
    payload: Any,
    policy: ContactWritePolicy,
    source: str,
    phone_number: str,
    request_id: str | None = None,
) -> ContactWriteResult:
    """Store one contact in a list and bump the list's counter.

    ``dedupe`` returns the existing contact for the same ``(email, list_id)`` without
    writing anything; ``append`` always inserts. The whole source payload is kept in
    ``custom_fields``.
    """
    if policy == "dedupe" and contact.email:
        existing_id = _find_existing_contact(list_id, contact.email)
        if existing_id:
            incr_metric("contacts.duplicate_skipped", source=source)
            log_event(
                "contact_already_in_list",
                request_id=request_id,
                list_id=list_id,
                contact_id=existing_id,
                source=source,
            )
            return ContactWriteResult(contact_id=existing_id, created=False)

    custom_fields = payload if isinstance(payload, dict) else {"body": payload}
    inserted = supabase.table("contacts").insert(
        {
            "list_id": list_id,
            "email": contact.email,
            "full_name": contact.full_name[:_FULL_NAME_MAX_LENGTH],
            "phone_number": phone_number,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "company": contact.company,
            "custom_fields": custom_fields,
            "source": source,
            "created_at": _now_iso(),
        }
    ).execute()
    contact_id = str(inserted.data[0]["id"]) if inserted.data else None
    _increment_contacts_count(list_id)

    incr_metric("contacts.created", source=source)
    log_event(
        "contact_added_to_list",
        request_id=request_id,
        list_id=list_id,
        contact_id=contact_id,
        source=source,
        has_email=bool(contact.email),
        has_phone=bool(phone_number),
    )
    return ContactWriteResult(contact_id=contact_id, created=True)
