"""Middleware package."""

from app.middleware.rate_limit import (
    CHAT_LIMIT,
    RENDER_LIMIT,
    RUN_LIMIT,
    SUBMIT_LIMIT,
    limiter,
    rate_limit_exceeded_handler,
)

__all__ = ["limiter", "rate_limit_exceeded_handler", "SUBMIT_LIMIT", "RUN_LIMIT", "RENDER_LIMIT", "CHAT_LIMIT"]
