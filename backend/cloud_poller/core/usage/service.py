from typing import Dict

import httpx

from cloud_poller.core.config import settings
from cloud_poller.core.usage.base import BaseUsageProvider
from cloud_poller.core.usage.providers.anthropic import AnthropicUsageProvider
from cloud_poller.core.usage.providers.openai import OpenAIUsageProvider
from cloud_poller.core.usage.providers.openrouter import OpenRouterUsageProvider


class UnknownProviderType(ValueError):
    """The configuration names a provider type with no registered adapter."""


USAGE_PROVIDER_REGISTRY: Dict[str, type[BaseUsageProvider]] = {
    "openai": OpenAIUsageProvider,
    "anthropic": AnthropicUsageProvider,
    "openrouter": OpenRouterUsageProvider,
}

PROVIDER_CONFIG: Dict[str, dict[str, str]] = {
    "openai": {
        "base_url_attr": "OPENAI_API_BASE",
    },
    "anthropic": {
        "base_url_attr": "ANTHROPIC_API_BASE",
    },
    "openrouter": {
        "base_url_attr": "OPENROUTER_API_BASE",
    },
}


def list_usage_provider_options() -> dict[str, object]:
    return {"providers": list(USAGE_PROVIDER_REGISTRY.keys())}


def _resolve_base_url(provider_type: str) -> str:
    attr = PROVIDER_CONFIG.get(provider_type, {}).get("base_url_attr", "")
    if attr:
        return str(getattr(settings, attr, "") or "")
    return ""


def create_usage_provider(
    provider_type: str,
    client: httpx.AsyncClient | None = None,
) -> BaseUsageProvider:
    key = str(provider_type or "").strip().lower()
    if key not in USAGE_PROVIDER_REGISTRY:
        raise UnknownProviderType(f"Unknown provider type: {provider_type}")

    provider_class = USAGE_PROVIDER_REGISTRY[key]
    return provider_class(client=client, base_url=_resolve_base_url(key))
