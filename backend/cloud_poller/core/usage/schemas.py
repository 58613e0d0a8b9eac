from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProviderType(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


class CostSource(str, Enum):
    REPORTED = "reported"  # itemized cost records summed over the window
    NO_COST_MODEL = "no_cost_model"  # provider exposes no cost breakdown, zeros are explicit
    CREDITS = "credits"  # cumulative credits consumed, not bounded to the month


class UsageSnapshot(BaseModel):
    """Normalized usage for one provider subscription at one poll."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider_type: ProviderType
    today_tokens: int = Field(default=0, ge=0)
    today_cost: float = Field(default=0.0, ge=0)
    mtd_tokens: int = Field(default=0, ge=0)
    mtd_cost: float = Field(default=0.0, ge=0)
    balance: float | None = None
    credits: float | None = None
    cost_source: CostSource = CostSource.REPORTED
    last_updated: datetime | None = None

    def to_payload(self) -> dict:
        payload = self.model_dump(mode="json", by_alias=True)
        for optional_key in ("balance", "credits", "lastUpdated"):
            if payload.get(optional_key) is None:
                payload.pop(optional_key, None)
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "UsageSnapshot":
        data = dict(payload)
        if "provider" in data and "providerType" not in data:
            data["providerType"] = data.pop("provider")
        return cls.model_validate(data)
