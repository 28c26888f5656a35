from __future__ import annotations

import re
from typing import Literal


NormalizedCampaignStatus = Literal["scheduled", "in-progress", "ended", "unknown"]

_NON_DIGITS = re.compile(r"\D")
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_uuid(value: str | None) -> bool:
    return bool(value) and bool(_UUID_RE.match(str(value).strip()))


def normalize_campaign_status(value: str | None) -> NormalizedCampaignStatus:
    if not value:
        return "unknown"
    key = str(value).strip().lower().replace("_", "-")
    mapping = {
        "scheduled": "scheduled",
        "queued": "scheduled",
        "in-progress": "in-progress",
        "inprogress": "in-progress",
        "running": "in-progress",
        "ended": "ended",
        "completed": "ended",
        "cancelled": "ended",
        "canceled": "ended",
    }
    return mapping.get(key, "unknown")


def country_code_digits(default_country_code: str | None) -> str:
    return _NON_DIGITS.sub("", default_country_code or "") or "1"


def normalize_phone_e164(raw: str | None, default_country_code: str | None = "+1") -> str:
    """Digits-only E.164 rendering of a free-form phone number.

    A leading ``+`` (or ``00``) marks the number as already international. Otherwise the
    default country code is prepended unless the digits already start with it and are
    longer than a national number.
    """
    if raw is None:
        return ""
    text = str(raw).strip()
    digits = _NON_DIGITS.sub("", text)
    if not digits:
        return ""
    if text.startswith("+"):
        return f"+{digits}"
    if text.startswith("00") and len(digits) > 2:
        return f"+{digits[2:]}"
    country_digits = country_code_digits(default_country_code)
    if len(digits) > 10 and digits.startswith(country_digits):
        return f"+{digits}"
    return f"+{country_digits}{digits}"
