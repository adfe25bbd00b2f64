from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings


def client_key(request: Request) -> str:
    """Callers sending an API key share one bucket per key; everyone else is keyed by address."""
    api_key = (request.headers.get("X-API-Key") or "").strip()
    if api_key:
        return f"key:{api_key}"
    return get_remote_address(request)


limiter = Limiter(key_func=client_key)


def rate_limit(limit: str | None = None):
    if not settings.rate_limit_enabled:
        def decorator(func):
            return func

        return decorator
    return limiter.limit(limit or settings.rate_limit)
