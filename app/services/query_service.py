"""
Research Query Service

CRUD for research queries and read access to everything derived from them.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import (
    CompetitorRecord,
    QueryStatus,
    QueryType,
    ResearchQuery,
    ResearchReport,
    SentimentRecord,
    TrendRecord,
)
from app.exceptions import QueryNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class QueryBundle:
    """A query together with every row derived from it."""
    query: ResearchQuery
    sentiments: list[SentimentRecord] = field(default_factory=list)
    competitors: list[CompetitorRecord] = field(default_factory=list)
    trends: list[TrendRecord] = field(default_factory=list)
    report: Optional[ResearchReport] = None


async def create_query(
    db: AsyncSession,
    query_text: str,
    owner_id: str,
    query_type: QueryType = QueryType.product,
) -> ResearchQuery:
    """Create a pending research query."""
    query = ResearchQuery(
        query_text=query_text,
        query_type=query_type,
        owner_id=owner_id,
        status=QueryStatus.pending,
    )
    db.add(query)
    await db.commit()
    await db.refresh(query)

    logger.info(f"Created research query {query.id} for owner {owner_id}: '{query_text}'")
    return query


async def get_query(db: AsyncSession, query_id: str) -> ResearchQuery:
    """
    Load a query by id.

    Raises:
        QueryNotFoundError: Unknown query
    """
    query = await db.get(ResearchQuery, query_id)
    if query is None:
        raise QueryNotFoundError(query_id)
    return query


async def list_queries(db: AsyncSession, owner_id: str, limit: int = 20) -> list[ResearchQuery]:
    """An owner's queries, newest first."""
    result = await db.execute(
        select(ResearchQuery)
        .where(ResearchQuery.owner_id == owner_id)
        .order_by(ResearchQuery.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_query(db: AsyncSession, query_id: str) -> None:
    """
    Delete a query; dependent rows go with it through ON DELETE CASCADE.

    Raises:
        QueryNotFoundError: Unknown query
    """
    query = await get_query(db, query_id)
    await db.delete(query)
    await db.commit()
    logger.info(f"Deleted research query {query_id}")


async def get_results(db: AsyncSession, query_id: str) -> QueryBundle:
    """Load a query and all of its derived rows."""
    query = await get_query(db, query_id)

    sentiments = (await db.execute(
        select(SentimentRecord).where(SentimentRecord.query_id == query_id).order_by(SentimentRecord.created_at)
    )).scalars().all()
    competitors = (await db.execute(
        select(CompetitorRecord).where(CompetitorRecord.query_id == query_id).order_by(CompetitorRecord.created_at)
    )).scalars().all()
    trends = (await db.execute(
        select(TrendRecord).where(TrendRecord.query_id == query_id).order_by(TrendRecord.created_at)
    )).scalars().all()
    report = (await db.execute(
        select(ResearchReport).where(ResearchReport.query_id == query_id)
    )).scalar_one_or_none()

    return QueryBundle(
        query=query,
        sentiments=list(sentiments),
        competitors=list(competitors),
        trends=list(trends),
        report=report,
    )


async def get_report(db: AsyncSession, query_id: str) -> Optional[ResearchReport]:
    """The query's report, or None if the aggregator has not run yet."""
    await get_query(db, query_id)
    result = await db.execute(select(ResearchReport).where(ResearchReport.query_id == query_id))
    return result.scalar_one_or_none()


async def recent_rows_for_owner(db: AsyncSession, owner_id: str, limit: int = 5):
    """Most recent sentiment, competitor and trend rows across an owner's queries."""
    owned = select(ResearchQuery.id).where(ResearchQuery.owner_id == owner_id)

    sentiments = (await db.execute(
        select(SentimentRecord).where(SentimentRecord.query_id.in_(owned))
        .order_by(SentimentRecord.created_at.desc()).limit(limit)
    )).scalars().all()
    competitors = (await db.execute(
        select(CompetitorRecord).where(CompetitorRecord.query_id.in_(owned))
        .order_by(CompetitorRecord.created_at.desc()).limit(limit)
    )).scalars().all()
    trends = (await db.execute(
        select(TrendRecord).where(TrendRecord.query_id.in_(owned))
        .order_by(TrendRecord.created_at.desc()).limit(limit)
    )).scalars().all()

    return list(sentiments), list(competitors), list(trends)
