import secrets

from fastapi import Header, HTTPException

from cloud_poller.core.config import settings


def require_api_token(authorization: str | None = Header(default=None)) -> None:
    expected_token = (settings.POLLER_API_TOKEN or "").strip()
    if not expected_token:
        return

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    provided_token = authorization[len("Bearer "):].strip()
    if not secrets.compare_digest(provided_token.encode("utf-8"), expected_token.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid token")
