from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


EMAIL_KEYS = ("email", "emailAddress", "email_address", "Email", "EMAIL")
FULL_NAME_KEYS = ("fullName", "full_name", "name", "Name")
PHONE_KEYS = ("phoneNumber", "phone_number", "phone", "Phone", "mobile", "mobileNumber", "mobile_number")
FIRST_NAME_KEYS = ("firstName", "first_name", "FirstName")
LAST_NAME_KEYS = ("lastName", "last_name", "LastName")
COMPANY_KEYS = ("company", "Company", "companyName", "company_name")

# Substring rules for provider form questions with free-form names, most specific first.
_FUZZY_RULES = (
    ("email", ("email",)),
    ("phone_number", ("phone", "mobile")),
    ("first_name", ("first_name", "first name", "firstname")),
    ("last_name", ("last_name", "last name", "lastname", "surname")),
    ("company", ("company",)),
    ("full_name", ("name",)),
)
_KNOWN_KEYS = frozenset(
    EMAIL_KEYS + FULL_NAME_KEYS + PHONE_KEYS + FIRST_NAME_KEYS + LAST_NAME_KEYS + COMPANY_KEYS
)


@dataclass
class ContactFields:
    email: str = ""
    full_name: str = ""
    phone_number: str = ""
    first_name: str = ""
    last_name: str = ""
    company: str = ""

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def _scalar_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, tuple, set, bool)):
        return ""
    return str(value).strip()


def _first_value(payload: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        text = _scalar_text(payload.get(key))
        if text:
            return text
    return ""


def _apply_fuzzy_rules(contact: ContactFields, payload: dict[str, Any]) -> None:
    claimed: set[str] = set(_KNOWN_KEYS)
    for attribute, needles in _FUZZY_RULES:
        if getattr(contact, attribute):
            continue
        for key, value in payload.items():
            if key in claimed:
                continue
            lowered = str(key).lower()
            if not any(needle in lowered for needle in needles):
                continue
            text = _scalar_text(value)
            if text:
                setattr(contact, attribute, text)
                claimed.add(key)
                break


def extract_contact_fields(payload: Any, *, fuzzy: bool = False) -> ContactFields:
    """Map an arbitrary JSON object onto the canonical contact shape.

    Every field resolves to a string; unmatched fields stay empty. ``fuzzy`` additionally
    matches keys by substring, for provider forms whose question names are user-defined.
    """
    contact = ContactFields()
    if not isinstance(payload, dict):
        return contact

    contact.email = _first_value(payload, EMAIL_KEYS)
    contact.full_name = _first_value(payload, FULL_NAME_KEYS)
    contact.phone_number = _first_value(payload, PHONE_KEYS)
    contact.first_name = _first_value(payload, FIRST_NAME_KEYS)
    contact.last_name = _first_value(payload, LAST_NAME_KEYS)
    contact.company = _first_value(payload, COMPANY_KEYS)
    if fuzzy:
        _apply_fuzzy_rules(contact, payload)

    if not contact.full_name and (contact.first_name or contact.last_name):
        contact.full_name = f"{contact.first_name} {contact.last_name}".strip()
    if not contact.full_name and contact.email:
        contact.full_name = contact.email.split("@")[0]
    return contact


def flatten_lead_field_data(field_data: Any) -> dict[str, Any]:
    """Turn provider ``[{"name": ..., "values": [...]}]`` answers into a flat object."""
    flattened: dict[str, Any] = {}
    if not isinstance(field_data, list):
        return flattened
    for field in field_data:
        if not isinstance(field, dict) or not field.get("name"):
            continue
        values = field.get("values")
        if isinstance(values, list):
            flattened[str(field["name"])] = values[0] if values else ""
        else:
            flattened[str(field["name"])] = values if values is not None else ""
    return flattened
