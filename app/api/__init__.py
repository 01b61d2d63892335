"""
API Routers

All FastAPI routers for the market research backend.
"""

from app.api import (
    agents,
    assistant,
    knowledge,
    queries,
    reports,
    scenarios,
)

__all__ = [
    "agents",
    "assistant",
    "knowledge",
    "queries",
    "reports",
    "scenarios",
]
