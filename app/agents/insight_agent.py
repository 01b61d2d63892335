"""
Insight Agent

Aggregates every sentiment, competitor and trend row collected for a query
into one executive report with insights and action-oriented recommendations.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.base import AgentRequest
from app.agents.prompts import insight_prompt
from app.config import Settings
from app.db.models import CompetitorRecord, Provenance, ResearchReport, SentimentRecord, TrendRecord
from app.exceptions import ProviderNotConfiguredError
from app.models.schemas import InsightItem, RecommendationItem, ReportPayload
from app.services.llm_service import LLMService, parse_json_payload

logger = logging.getLogger(__name__)


DEFAULT_RECOMMENDATION = RecommendationItem(
    action="Implement immediate monitoring of competitor pricing and sentiment changes",
    rationale="Market conditions are dynamic and require continuous monitoring for strategic advantage",
    timeline="immediate",
    priority="high",
)

FALLBACK_REPORT = ReportPayload(
    summary=(
        "Market intelligence analysis completed. Key competitive opportunities and strategic actions "
        "identified based on current market data and competitive landscape."
    ),
    insights=[
        InsightItem(
            category="competitive",
            title="Market Position Analysis Complete",
            description=(
                "Comprehensive analysis of market sentiment, competitive positioning, and trending "
                "opportunities has revealed actionable intelligence for strategic decision-making."
            ),
            priority="high",
            impact="Enhanced market understanding enables data-driven strategic decisions and competitive advantage",
        ),
        InsightItem(
            category="opportunity",
            title="Strategic Opportunities Identified",
            description=(
                "Market data analysis has uncovered specific opportunities for market share growth "
                "and customer engagement improvement."
            ),
            priority="medium",
            impact="Targeted actions can improve market position and customer satisfaction metrics",
        ),
    ],
    recommendations=[
        RecommendationItem(
            action="Launch competitive monitoring dashboard to track real-time market changes",
            rationale=(
                "Continuous market intelligence enables proactive strategic responses to competitive "
                "threats and opportunities"
            ),
            timeline="short-term",
            priority="high",
        ),
        RecommendationItem(
            action="Develop customer sentiment improvement campaign based on identified pain points",
            rationale="Addressing customer concerns proactively can improve satisfaction scores and reduce churn risk",
            timeline="immediate",
            priority="high",
        ),
        RecommendationItem(
            action="Optimize product positioning to leverage trending market features",
            rationale="Aligning product messaging with market trends can increase engagement and conversion rates",
            timeline="short-term",
            priority="medium",
        ),
    ],
)


@dataclass
class InsightResult:
    success: bool
    insights: int
    recommendations: int
    provenance: Provenance
    report_id: Optional[str] = None


def report_title(query_text: str) -> str:
    return f"Market Analysis Report: {query_text}"


class InsightAggregator:
    """Builds and stores the single report for a query."""

    def __init__(
        self,
        settings: Settings,
        llm: LLMService,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.settings = settings
        self.llm = llm
        self.session_factory = session_factory

    async def _load_rows(self, query_id: str):
        async with self.session_factory() as session:
            sentiments = (await session.execute(
                select(SentimentRecord).where(SentimentRecord.query_id == query_id)
            )).scalars().all()
            competitors = (await session.execute(
                select(CompetitorRecord).where(CompetitorRecord.query_id == query_id)
            )).scalars().all()
            trends = (await session.execute(
                select(TrendRecord).where(TrendRecord.query_id == query_id)
            )).scalars().all()
        return sentiments, competitors, trends

    async def generate(self, request: AgentRequest) -> tuple[ReportPayload, Provenance]:
        """Ask the model for a report; any failure yields the fixed fallback report."""
        sentiments, competitors, trends = await self._load_rows(request.query_id)
        logger.info(
            f"Insight agent aggregating {len(sentiments)} sentiment, {len(competitors)} competitor, "
            f"{len(trends)} trend rows for query {request.query_id}"
        )

        if not self.llm.available:
            logger.info("Insight agent: no generative provider, using fallback report")
            return FALLBACK_REPORT.model_copy(deep=True), Provenance.placeholder

        prompt = insight_prompt(request.query_text, request.query_type, sentiments, competitors, trends)
        try:
            completion = await self.llm.chat(
                prompt.to_messages(),
                task_type=prompt.task_type,
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
                json_mode=prompt.json_mode,
            )
            report = ReportPayload.model_validate(parse_json_payload(completion.content))
        except (ProviderNotConfiguredError, ValidationError, ValueError, RuntimeError) as e:
            logger.warning(f"Insight generation failed for query {request.query_id}: {e}")
            return FALLBACK_REPORT.model_copy(deep=True), Provenance.placeholder

        if not report.recommendations:
            report.recommendations = [DEFAULT_RECOMMENDATION.model_copy()]
        return report, Provenance.generative

    async def run(self, request: AgentRequest) -> InsightResult:
        """Generate the report and store it, replacing any earlier report for the query."""
        report, provenance = await self.generate(request)

        async with self.session_factory() as session:
            existing = (await session.execute(
                select(ResearchReport).where(ResearchReport.query_id == request.query_id)
            )).scalar_one_or_none()

            insights = [item.model_dump() for item in report.insights]
            recommendations = [item.model_dump() for item in report.recommendations]

            if existing:
                existing.title = report_title(request.query_text)
                existing.summary = report.summary
                existing.insights = insights
                existing.recommendations = recommendations
                existing.provenance = provenance
                # Stale once the content changes; the renderer sets it again
                existing.document_url = None
                row = existing
            else:
                row = ResearchReport(
                    query_id=request.query_id,
                    title=report_title(request.query_text),
                    summary=report.summary,
                    insights=insights,
                    recommendations=recommendations,
                    provenance=provenance,
                )
                session.add(row)

            await session.commit()
            report_id = row.id

        logger.info(f"Insight generation completed for query: {request.query_id}")
        return InsightResult(
            success=True,
            insights=len(insights),
            recommendations=len(recommendations),
            provenance=provenance,
            report_id=report_id,
        )
