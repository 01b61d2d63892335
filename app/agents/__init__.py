"""
Research agents for the market research pipeline.

- ProducerAgent: three-tier base for the data-collecting agents
- SentimentAgent, CompetitorAgent, TrendAgent: one table each
- InsightAggregator: writes the executive report for a query
- ResearchOrchestrator: runs the whole pipeline for a query
"""

from app.agents.base import (
    AgentKind,
    AgentRequest,
    AgentResult,
    ProducerAgent,
)

from app.agents.sentiment_agent import SentimentAgent
from app.agents.competitor_agent import CompetitorAgent
from app.agents.trend_agent import TrendAgent

from app.agents.insight_agent import (
    InsightAggregator,
    InsightResult,
)

from app.agents.orchestrator import (
    ResearchOrchestrator,
    OrchestrationResult,
    build_orchestrator,
    start_background_run,
)

__all__ = [
    # Base classes
    "AgentKind",
    "AgentRequest",
    "AgentResult",
    "ProducerAgent",

    # Producers
    "SentimentAgent",
    "CompetitorAgent",
    "TrendAgent",

    # Aggregation
    "InsightAggregator",
    "InsightResult",

    # Orchestration
    "ResearchOrchestrator",
    "OrchestrationResult",
    "build_orchestrator",
    "start_background_run",
]
