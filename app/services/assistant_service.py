"""
Assistant Service

Conversational market research assistant. Answers are grounded in the
user's most recent research rows (or one specific query) and come with an
optional UI action tag for the dashboard.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.prompts import assistant_prompt
from app.config import Settings
from app.db.models import CompetitorRecord, ResearchQuery, ResearchReport, SentimentRecord, TrendRecord
from app.exceptions import ProviderNotConfiguredError, QueryNotFoundError
from app.services import query_service
from app.services.knowledge_service import KnowledgeService
from app.services.llm_service import LLMService

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I'm here to help with market research analysis. "
    "What specific product or company would you like me to research?"
)

CONTEXT_ROWS = 5
CONTEXT_CHUNKS = 3


def detect_assistant_action(message: str) -> Optional[str]:
    """Dashboard action suggested by the message, if any."""
    lowered = message.lower()
    if "sentiment" in lowered and "trend" in lowered:
        return "show_trends"
    if "competitor" in lowered and any(word in lowered for word in ("report", "comparison", "compare")):
        return "show_comparison"
    if "price" in lowered and "drop" in lowered:
        return "generate_report"
    if "report" in lowered and any(word in lowered for word in ("generate", "create", "download")):
        return "generate_report"
    return None


def format_context(sentiments, competitors, trends, report: Optional[ResearchReport] = None, passages=None) -> str:
    sections = []

    if competitors:
        sections.append("Recent Competitor Data:\n" + "\n".join(
            f"• {c.competitor_name}: ${c.price if c.price is not None else 'N/A'}, "
            f"Rating: {c.rating if c.rating is not None else 'N/A'}/5"
            for c in competitors
        ))

    if sentiments:
        counts: dict[str, int] = {}
        for s in sentiments:
            label = getattr(s.sentiment, "value", s.sentiment)
            counts[label] = counts.get(label, 0) + 1
        avg_confidence = sum(s.confidence for s in sentiments) / len(sentiments)
        breakdown = ", ".join(f"{label}: {n}" for label, n in sorted(counts.items()))
        sources = ", ".join(dict.fromkeys(s.source for s in sentiments))
        sections.append(
            "Recent Sentiment Analysis:\n"
            f"• Breakdown: {breakdown}\n"
            f"• Average confidence: {avg_confidence * 100:.1f}%\n"
            f"• Sources: {sources}"
        )

    if trends:
        sections.append("Recent Trend Data:\n" + "\n".join(
            f"• {t.keyword}: {t.search_volume if t.search_volume is not None else 'N/A'} searches, "
            f"trending {getattr(t.trend_direction, 'value', t.trend_direction) or 'stable'}"
            for t in trends
        ))

    if report is not None and report.summary:
        sections.append(f"Executive Summary:\n{report.summary}")

    if passages:
        sections.append("Relevant Research Notes:\n" + "\n".join(f"• {p}" for p in passages))

    return "\n\n".join(sections)


@dataclass
class AssistantReply:
    response: str
    action: Optional[str] = None


class AssistantService:
    def __init__(
        self,
        settings: Settings,
        llm: LLMService,
        session_factory: async_sessionmaker[AsyncSession],
        knowledge: Optional[KnowledgeService] = None,
    ):
        self.settings = settings
        self.llm = llm
        self.session_factory = session_factory
        self.knowledge = knowledge

    async def _query_context(self, session: AsyncSession, user_id: str, query_id: str, message: str) -> str:
        query = await session.get(ResearchQuery, query_id)
        if query is None or query.owner_id != user_id:
            raise QueryNotFoundError(query_id)

        sentiments = (await session.execute(
            select(SentimentRecord).where(SentimentRecord.query_id == query_id).limit(CONTEXT_ROWS)
        )).scalars().all()
        competitors = (await session.execute(
            select(CompetitorRecord).where(CompetitorRecord.query_id == query_id).limit(CONTEXT_ROWS)
        )).scalars().all()
        trends = (await session.execute(
            select(TrendRecord).where(TrendRecord.query_id == query_id).limit(CONTEXT_ROWS)
        )).scalars().all()
        report = (await session.execute(
            select(ResearchReport).where(ResearchReport.query_id == query_id)
        )).scalar_one_or_none()

        passages = []
        if self.knowledge is not None:
            try:
                matches, _ = await self.knowledge.search(message, query_id=query_id, limit=CONTEXT_CHUNKS)
                passages = [m.content for m in matches]
            except Exception as e:
                logger.warning(f"Knowledge lookup failed for assistant context: {e}")

        header = f"Research subject: {query.query_text} ({getattr(query.query_type, 'value', query.query_type)})"
        body = format_context(sentiments, competitors, trends, report, passages)
        return f"{header}\n\n{body}" if body else header

    async def build_context(self, user_id: str, message: str, query_id: Optional[str] = None) -> str:
        """
        Context text for the system prompt.

        Raises:
            QueryNotFoundError: query_id given but not owned by the user
        """
        async with self.session_factory() as session:
            if query_id:
                return await self._query_context(session, user_id, query_id, message)
            sentiments, competitors, trends = await query_service.recent_rows_for_owner(
                session, user_id, limit=CONTEXT_ROWS
            )
        return format_context(sentiments, competitors, trends)

    async def respond(self, message: str, user_id: str, query_id: Optional[str] = None) -> AssistantReply:
        """Answer a chat message. Provider failures yield the fixed fallback message."""
        action = detect_assistant_action(message)
        context = await self.build_context(user_id, message, query_id)
        prompt = assistant_prompt(message, context)

        try:
            completion = await self.llm.chat(
                prompt.to_messages(),
                task_type=prompt.task_type,
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
                json_mode=prompt.json_mode,
            )
            text = completion.content.strip()
        except (ProviderNotConfiguredError, RuntimeError) as e:
            logger.warning(f"Assistant providers unavailable, using fallback message: {e}")
            text = ""

        return AssistantReply(response=text or FALLBACK_MESSAGE, action=action)
