from pydantic import AliasChoices, BaseModel, Field


class ProviderConfig(BaseModel):
    """One (user, provider) subscription. Read-only to the poller."""

    user_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("userId", "user_id"),
        serialization_alias="userId",
    )
    provider_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("providerId", "provider_id"),
        serialization_alias="providerId",
    )
    # Kept as a plain tag so unknown types survive loading and fail per config.
    provider_type: str = Field(
        validation_alias=AliasChoices("providerType", "provider_type"),
        serialization_alias="providerType",
    )
    credential: str = Field(
        default="",
        repr=False,
        validation_alias=AliasChoices("apiKey", "credential", "api_key"),
        serialization_alias="apiKey",
    )
    soft_limit: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("softLimit", "soft_limit"),
        serialization_alias="softLimit",
    )
    hard_limit: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("hardLimit", "hard_limit"),
        serialization_alias="hardLimit",
    )
    enabled: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return self.user_id, self.provider_id


class PushTokens(BaseModel):
    apns: str | None = None
    fcm: str | None = None

    def registered(self) -> dict[str, str]:
        return {
            channel: token
            for channel, token in (("apns", self.apns), ("fcm", self.fcm))
            if token and token.strip()
        }
