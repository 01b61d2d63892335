"""
Research Orchestrator

Drives one research query through the full pipeline:

1. Mark the query processing
2. Run the producer agents concurrently and wait for all of them
3. Aggregate insights into the report
4. Chunk/embed the results and render the report document
5. Mark the query completed

Agent and stage failures are logged and counted; only an unexpected error in
the orchestrator itself marks the query failed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.base import AgentRequest, AgentResult, ProducerAgent
from app.agents.competitor_agent import CompetitorAgent
from app.agents.insight_agent import InsightAggregator
from app.agents.sentiment_agent import SentimentAgent
from app.agents.trend_agent import TrendAgent
from app.config import Settings
from app.db.models import QueryStatus, ResearchQuery
from app.exceptions import OrchestrationError, QueryNotFoundError
from app.services.knowledge_service import KnowledgeService
from app.services.llm_service import LLMService
from app.services.report_service import ReportRenderer
from app.services.search_service import SearchService
from app.services.social_service import SocialService
from app.services.storage_service import StorageService
from app.utils.async_utils import create_task_with_error_handling, gather_settled, run_with_timeout

logger = logging.getLogger(__name__)

ACTIVE_OR_DONE = (QueryStatus.processing, QueryStatus.completed)


@dataclass
class OrchestrationResult:
    """Summary of one orchestrator invocation."""
    query_id: str
    success: bool
    failed_agents: int = 0
    total_agents: int = 0
    skipped: bool = False
    agent_results: list[AgentResult] = field(default_factory=list)


class ResearchOrchestrator:
    """
    Runs the research pipeline for a query.

    Collaborators are injected so tests can substitute any stage.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        agents: list[ProducerAgent],
        insight: InsightAggregator,
        knowledge: Optional[KnowledgeService] = None,
        renderer: Optional[ReportRenderer] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.agents = agents
        self.insight = insight
        self.knowledge = knowledge
        self.renderer = renderer

    async def _set_status(self, query_id: str, status: QueryStatus) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(ResearchQuery).where(ResearchQuery.id == query_id).values(status=status)
            )
            await session.commit()

    async def _claim(self, query_id: str) -> bool:
        """Atomically move a query to processing unless it is already processing or completed."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(ResearchQuery)
                .where(ResearchQuery.id == query_id)
                .where(ResearchQuery.status.not_in(ACTIVE_OR_DONE))
                .values(status=QueryStatus.processing)
            )
            await session.commit()
            return result.rowcount == 1

    async def _run_stage(self, name: str, query_id: str, coro) -> bool:
        """Run a best-effort stage; failures and timeouts are logged, never raised."""
        try:
            await run_with_timeout(coro, self.settings.stage_timeout_seconds, task_name=f"{name}:{query_id}")
            return True
        except Exception as e:
            logger.warning(f"Stage '{name}' failed for query {query_id}: {e!r}")
            return False

    async def run(self, query_id: str) -> OrchestrationResult:
        """
        Execute the pipeline for a query.

        Raises:
            QueryNotFoundError: Unknown query (nothing is marked)
            OrchestrationError: Unexpected failure; the query is marked failed
        """
        async with self.session_factory() as session:
            query = await session.get(ResearchQuery, query_id)
            if query is None:
                raise QueryNotFoundError(query_id)
            request = AgentRequest(query_id=query.id, query_text=query.query_text, query_type=query.query_type)

        logger.info(f"Research orchestration started for query {query_id}: '{request.query_text}'")

        try:
            if self.settings.orchestrator_status_guard:
                if not await self._claim(query_id):
                    logger.info(f"Query {query_id} is already processing or completed, skipping")
                    return OrchestrationResult(
                        query_id=query_id, success=True, total_agents=len(self.agents), skipped=True
                    )
            else:
                await self._set_status(query_id, QueryStatus.processing)

            outcomes = await gather_settled(
                {agent.name: agent.run(request) for agent in self.agents},
                timeout=self.settings.agent_timeout_seconds,
            )
            failed_agents = sum(1 for outcome in outcomes if not outcome.ok)
            agent_results = [outcome.value for outcome in outcomes if outcome.ok]
            logger.info(f"Agents finished for query {query_id}: {len(self.agents) - failed_agents}/{len(self.agents)} succeeded")

            await self._run_stage("insight", query_id, self.insight.run(request))
            if self.knowledge is not None:
                await self._run_stage("knowledge", query_id, self.knowledge.process_query(query_id))
            if self.renderer is not None:
                await self._run_stage("render", query_id, self.renderer.render(query_id))

            await self._set_status(query_id, QueryStatus.completed)
        except asyncio.CancelledError:
            logger.warning(f"Research orchestration cancelled for query {query_id}")
            try:
                await asyncio.shield(self._set_status(query_id, QueryStatus.failed))
            except Exception as mark_error:
                logger.error(f"Could not mark query {query_id} as failed: {mark_error}")
            raise
        except Exception as e:
            logger.error(f"Research orchestration failed for query {query_id}: {e}", exc_info=True)
            try:
                await self._set_status(query_id, QueryStatus.failed)
            except Exception as mark_error:
                logger.error(f"Could not mark query {query_id} as failed: {mark_error}")
            raise OrchestrationError(query_id, str(e)) from e

        logger.info(f"Research orchestration completed for query {query_id}")
        return OrchestrationResult(
            query_id=query_id,
            success=True,
            failed_agents=failed_agents,
            total_agents=len(self.agents),
            agent_results=agent_results,
        )


# =============================================================================
# Factory and background runs
# =============================================================================

def build_orchestrator(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    llm: LLMService,
    search: Optional[SearchService] = None,
    social: Optional[SocialService] = None,
    storage: Optional[StorageService] = None,
) -> ResearchOrchestrator:
    """Wire the default pipeline from shared adapters."""
    search = search or SearchService(settings)
    social = social or SocialService(settings)
    agents = [
        agent_cls(settings, llm, session_factory, search=search, social=social)
        for agent_cls in (SentimentAgent, CompetitorAgent, TrendAgent)
    ]
    return ResearchOrchestrator(
        settings=settings,
        session_factory=session_factory,
        agents=agents,
        insight=InsightAggregator(settings, llm, session_factory),
        knowledge=KnowledgeService(settings, llm, session_factory),
        renderer=ReportRenderer(settings, session_factory, storage=storage),
    )


# Keeps references so running tasks are not garbage collected
_background_runs: set[asyncio.Task] = set()


def start_background_run(orchestrator: ResearchOrchestrator, query_id: str) -> asyncio.Task:
    """Start a pipeline run without awaiting it; exceptions are logged."""
    task = create_task_with_error_handling(orchestrator.run(query_id), task_name=f"research:{query_id}")
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)
    return task
