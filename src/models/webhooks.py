from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    success: bool = True
    message: str
    webhook_id: str
    timestamp: datetime


class InboundEventListItem(BaseModel):
    id: str
    webhook_id: str
    method: str
    body: Any = None
    is_error: bool = False
    received_at: datetime | None = None


class InboundEventReplayResponse(BaseModel):
    status: Literal["replayed", "failed"]
    webhook_id: str
    event_id: str
    dispatch_status: Literal["completed", "stopped"] | None = None
    reason: str | None = None
    list_id: str | None = None
    contact_id: str | None = None
    campaign_status: str | None = None
    campaign_id: str | None = None
    campaign_error: str | None = None


class FailedCampaignLeadItem(BaseModel):
    lead_id: str
    form_id: str | None = None
    page_id: str | None = None
    user_id: str | None = None
    campaign_error: str | None = None
    updated_at: datetime | None = None


class LeadFixtureRequest(BaseModel):
    page_id: str
    form_id: str
    lead_data: dict[str, Any] = Field(default_factory=dict)


class LeadFixtureResponse(BaseModel):
    lead_id: str
    expires_at: datetime
    payload: dict[str, Any]


class MetricsSnapshotFlushRequest(BaseModel):
    source: str = "manual_flush"
    reset_after_persist: bool = False


class MetricsSnapshotFlushResponse(BaseModel):
    persisted: bool
    source: str
    counter_count: int
