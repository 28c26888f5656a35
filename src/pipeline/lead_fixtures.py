from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from src.config import settings
from src.db import supabase


def is_test_lead_id(lead_id: str | None) -> bool:
    return bool(lead_id) and str(lead_id).startswith(settings.test_lead_prefix)


def _as_field_data(lead_data: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {"name": str(name), "values": value if isinstance(value, list) else [value]}
        for name, value in lead_data.items()
    ]


def store_test_lead_data(lead_id: str, lead_data: dict[str, Any]) -> str:
    """Keep fixture answers for a simulated lead; they expire after the configured TTL."""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=settings.test_lead_ttl_seconds)
    supabase.table("test_lead_data").upsert(
        {
            "lead_id": lead_id,
            "field_data": _as_field_data(lead_data),
            "created_at": now.isoformat(),
            "expires_at": expires_at.isoformat(),
        },
        on_conflict="lead_id",
    ).execute()
    return expires_at.isoformat()


def get_test_lead_data(lead_id: str) -> dict[str, Any] | None:
    now_iso = datetime.now(timezone.utc).isoformat()
    result = supabase.table("test_lead_data").select("lead_id, field_data, created_at").eq(
        "lead_id", lead_id
    ).gt("expires_at", now_iso).execute()
    if not result.data:
        return None
    row = result.data[0]
    return {
        "id": lead_id,
        "created_time": row.get("created_at") or now_iso,
        "field_data": row.get("field_data") or [],
    }
