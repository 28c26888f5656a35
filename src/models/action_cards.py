from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _optional_text(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return value


class ListAction(BaseModel):
    kind: Literal["list"] = "list"
    card_id: str | None = None
    list_id: str | None = None

    @field_validator("card_id", "list_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _optional_text(value)


class CampaignAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["outbound_campaign"] = "outbound_campaign"
    card_id: str | None = None
    phone_number_id: str | None = Field(default=None, alias="phoneNumberId")
    assistant_id: str | None = Field(default=None, alias="assistantId")
    workflow_id: str | None = Field(default=None, alias="workflowId")
    auto_launch: bool = Field(default=False, alias="autoLaunch")
    name: str | None = None

    @field_validator("card_id", "phone_number_id", "assistant_id", "workflow_id", "name", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        return _optional_text(value)

    @field_validator("auto_launch", mode="before")
    @classmethod
    def _coerce_auto_launch(cls, value: Any) -> Any:
        return False if value is None else value


class UnsupportedAction(BaseModel):
    kind: Literal["unsupported"] = "unsupported"
    card_id: str | None = None
    card_type: str | None = None
    error: str | None = None


ActionCard = Annotated[
    Union[ListAction, CampaignAction, UnsupportedAction],
    Field(discriminator="kind"),
]
