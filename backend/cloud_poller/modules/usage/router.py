import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from cloud_poller.core.security import require_api_token
from cloud_poller.core.usage.base import PollError
from cloud_poller.core.usage.service import UnknownProviderType, list_usage_provider_options
from cloud_poller.modules.store.schemas import PushTokens
from cloud_poller.modules.usage.api_schemas import (
    CycleReportResponse,
    PollRequest,
    PushTokensResponse,
)
from cloud_poller.modules.usage.service import (
    get_user_usage,
    poll_provider,
    register_push_tokens,
    trigger_cycle,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Usage"], prefix="/api", dependencies=[Depends(require_api_token)])


@router.get("/providers")
async def get_provider_options():
    return list_usage_provider_options()


@router.post("/poll/{provider}")
async def poll_provider_endpoint(provider: str, request: PollRequest | None = None):
    api_key = ((request.api_key if request else None) or "").strip()
    if not api_key:
        raise HTTPException(status_code=400, detail="API key required")

    try:
        snapshot = await poll_provider(provider, api_key)
    except UnknownProviderType as exc:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {provider}") from exc
    except PollError as exc:
        logger.warning("On-demand poll for %s failed: %s", provider, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return snapshot.to_payload()


@router.get("/usage/{user_id}")
async def get_usage_endpoint(user_id: str):
    return get_user_usage(user_id)


@router.put("/push-tokens/{user_id}", response_model=PushTokensResponse)
async def put_push_tokens_endpoint(user_id: str, tokens: PushTokens):
    channels = register_push_tokens(user_id, tokens)
    return PushTokensResponse(status="updated", channels=channels)


@router.post("/cycle", response_model=CycleReportResponse)
async def run_cycle_endpoint():
    return await trigger_cycle()
