"""FastAPI dependencies: DB sessions, auth and request metadata."""

from fastapi import Header, HTTPException, Request

from config import get_settings
from db.connection import get_db as get_db  # noqa: F401  re-exported for routes


def get_api_key(x_api_key: str = Header(default="")) -> str:
    """Validate API key on mutation and review endpoints."""
    expected: str | None = get_settings().api_key
    if not expected:
        return ""  # auth disabled when no key configured
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


def get_client_ip(request: Request) -> str | None:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded: str = request.headers.get("x-forwarded-for", "")
    first: str = forwarded.split(",")[0].strip()
    if first:
        return first
    return request.client.host if request.client else None


def get_user_agent(user_agent: str | None = Header(default=None)) -> str | None:
    return user_agent
