from pydantic import AliasChoices, BaseModel, Field


class PollRequest(BaseModel):
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("apiKey", "credential", "api_key"),
    )


class PushTokensResponse(BaseModel):
    status: str
    channels: list[str]


class ConfigFailureItem(BaseModel):
    user_id: str
    provider_id: str
    message: str


class CycleReportResponse(BaseModel):
    started_at: str
    succeeded: int
    failed: int
    skipped: int
    alerts: int
    failures: list[ConfigFailureItem]
