"""
Single-agent endpoints.

Each producer agent and the insight aggregator can be invoked on its own for
an existing query. Failures come back as {"error": ...} with an error status.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.base import AgentKind, AgentRequest, ProducerAgent
from app.agents.competitor_agent import CompetitorAgent
from app.agents.insight_agent import InsightAggregator
from app.agents.sentiment_agent import SentimentAgent
from app.agents.trend_agent import TrendAgent
from app.api.deps import (
    get_app_settings,
    get_db,
    get_insight,
    get_llm,
    get_search,
    get_session_factory,
    get_social,
)
from app.config import Settings
from app.exceptions import AgentError, QueryNotFoundError
from app.models.schemas import AgentRunRequest, AgentRunResponse, InsightRunResponse
from app.services import query_service
from app.services.llm_service import LLMService
from app.services.search_service import SearchService
from app.services.social_service import SocialService

logger = logging.getLogger(__name__)

router = APIRouter()

AGENT_CLASSES: dict[AgentKind, type[ProducerAgent]] = {
    AgentKind.SENTIMENT: SentimentAgent,
    AgentKind.COMPETITOR: CompetitorAgent,
    AgentKind.TREND: TrendAgent,
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _to_request(data: AgentRunRequest) -> AgentRequest:
    return AgentRequest(query_id=data.query_id, query_text=data.query_text, query_type=data.query_type)


@router.post("/insights", response_model=InsightRunResponse)
async def run_insights(
    data: AgentRunRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    insight: Annotated[InsightAggregator, Depends(get_insight)],
):
    """Aggregate the query's rows into its executive report."""
    try:
        await query_service.get_query(db, data.query_id)
    except QueryNotFoundError as e:
        return _error(status.HTTP_404_NOT_FOUND, str(e))

    try:
        result = await insight.run(_to_request(data))
    except Exception as e:
        logger.error(f"Error in insight agent: {e}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return InsightRunResponse(
        success=result.success,
        insights=result.insights,
        recommendations=result.recommendations,
    )


@router.post("/{agent_kind}", response_model=AgentRunResponse)
async def run_agent(
    agent_kind: AgentKind,
    data: AgentRunRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    llm: Annotated[LLMService, Depends(get_llm)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    search: Annotated[SearchService, Depends(get_search)],
    social: Annotated[SocialService, Depends(get_social)],
):
    """Run one producer agent for an existing query."""
    try:
        await query_service.get_query(db, data.query_id)
    except QueryNotFoundError as e:
        return _error(status.HTTP_404_NOT_FOUND, str(e))

    agent = AGENT_CLASSES[agent_kind](settings, llm, session_factory, search=search, social=social)
    try:
        result = await agent.run(_to_request(data))
    except AgentError as e:
        logger.error(f"Error in {agent_kind.value} agent: {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return AgentRunResponse(success=result.success, count=result.count, provenance=result.provenance)
