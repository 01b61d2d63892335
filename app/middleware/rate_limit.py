"""
Request budgets for the endpoints that trigger provider calls.

Submissions, synchronous pipeline runs, report renders and assistant chats
each spend external API quota, so each gets its own per-caller limit.
In-memory storage: limits are per worker process.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

SUBMIT_LIMIT = "20/minute"
RUN_LIMIT = "10/minute"
RENDER_LIMIT = "10/minute"
CHAT_LIMIT = "30/minute"

DEFAULT_RETRY_AFTER = 60


def get_user_or_ip(request: Request) -> str:
    """Budget key: the X-User-Id header when sent, otherwise the client address."""
    user_id = request.headers.get("X-User-Id", "").strip()
    if user_id:
        return f"user:{user_id[:64]}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_user_or_ip)


def _retry_after(exc: RateLimitExceeded) -> int:
    item = getattr(getattr(exc, "limit", None), "limit", None)
    return item.get_expiry() if item is not None else DEFAULT_RETRY_AFTER


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 with the same {"error": ...} body the agent endpoints use."""
    retry_after = _retry_after(exc)
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Rate limit exceeded ({exc.detail}). Try again in {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
