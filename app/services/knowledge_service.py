"""
Knowledge Service (RAG)

Turns a query's collected rows into sentence-packed passages, embeds them,
and serves similarity search over the stored chunks.

Search uses pgvector cosine distance on PostgreSQL and an in-process cosine
on other backends. When the search text cannot be embedded, it falls back to
keyword scoring.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.db import models
from app.db.models import (
    CompetitorRecord,
    KnowledgeChunk,
    ResearchQuery,
    ResearchReport,
    SentimentRecord,
    TrendRecord,
    decode_embedding,
    encode_embedding,
)
from app.exceptions import QueryNotFoundError
from app.services.llm_service import LLMService
from app.utils.datetime_utils import utc_now
from app.utils.text_analysis import tokenize

logger = logging.getLogger(__name__)

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


# =============================================================================
# Chunking
# =============================================================================

def split_sentences(text: str) -> list[str]:
    """Split on terminal punctuation followed by whitespace ("$1.99" stays whole)."""
    return [s.strip() for s in _SENTENCE_BOUNDARY_RE.split(text.strip()) if s.strip()]


def chunk_text(text: str, max_chunk_size: int = 500) -> list[str]:
    """
    Pack sentences into passages of at most max_chunk_size characters.

    A single sentence longer than the bound becomes its own passage.
    """
    chunks: list[str] = []
    current = ""

    for sentence in split_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence
        if current and len(candidate) > max_chunk_size:
            chunks.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks


def _label(value) -> str:
    return getattr(value, "value", value) if value is not None else "N/A"


def build_passages(sentiments, competitors, trends, report: Optional[ResearchReport] = None) -> list[tuple[str, str]]:
    """Render rows as (kind, text) passages ready for chunking."""
    passages = []

    for s in sentiments:
        passages.append(("sentiment", (
            f"Sentiment from {s.source}: {_label(s.sentiment)} ({s.confidence} confidence). "
            f"Content: {s.content}. Topics: {', '.join(s.topics or [])}"
        )))

    for c in competitors:
        price = f"${c.price}" if c.price is not None else "N/A"
        passages.append(("competitor", (
            f"Competitor {c.competitor_name}: Price {price}, Rating {c.rating if c.rating is not None else 'N/A'}. "
            f"Features: {', '.join(c.features or [])}. URL: {c.url or 'N/A'}"
        )))

    for t in trends:
        passages.append(("trend", (
            f'Trend keyword "{t.keyword}": {t.search_volume if t.search_volume is not None else "N/A"} searches, '
            f"{_label(t.trend_direction)} trend over {t.time_period}."
        )))

    if report is not None:
        if report.summary:
            passages.append(("report", f"Report summary: {report.summary}"))
        for insight in report.insights or []:
            passages.append(("insight", f"Insight: {insight.get('title', '')}. {insight.get('description', '')}"))

    return passages


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def keyword_score(query: str, content: str) -> float:
    """Phrase hit counts double; each distinct query token adds one. Normalized to [0, 1]."""
    tokens = set(tokenize(query))
    if not tokens:
        return 0.0
    lowered = content.lower()
    content_tokens = set(tokenize(content))

    score = 0
    if query.lower().strip() in lowered:
        score += 2
    score += sum(1 for t in tokens if t in content_tokens)
    return score / (len(tokens) + 2)


# =============================================================================
# Service
# =============================================================================

@dataclass
class ProcessResult:
    chunks: int
    embedded: int


@dataclass
class ChunkMatch:
    id: str
    query_id: str
    content: str
    similarity: float
    metadata: dict = field(default_factory=dict)


class KnowledgeService:
    """Chunking, embedding and retrieval for research queries."""

    def __init__(
        self,
        settings: Settings,
        llm: LLMService,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.settings = settings
        self.llm = llm
        self.session_factory = session_factory

    async def _embed(self, texts: list[str]) -> Optional[list[list[float]]]:
        if not texts or not self.llm.embeddings_available:
            return None
        try:
            return await self.llm.embed(texts)
        except Exception as e:
            logger.warning(f"Embedding failed for {len(texts)} texts: {e}")
            return None

    async def process_query(self, query_id: str) -> ProcessResult:
        """
        Chunk and embed every row collected for a query.

        Chunks are stored even when embeddings are unavailable.

        Raises:
            QueryNotFoundError: Unknown query
        """
        async with self.session_factory() as session:
            query = await session.get(ResearchQuery, query_id)
            if query is None:
                raise QueryNotFoundError(query_id)

            sentiments = (await session.execute(
                select(SentimentRecord).where(SentimentRecord.query_id == query_id)
            )).scalars().all()
            competitors = (await session.execute(
                select(CompetitorRecord).where(CompetitorRecord.query_id == query_id)
            )).scalars().all()
            trends = (await session.execute(
                select(TrendRecord).where(TrendRecord.query_id == query_id)
            )).scalars().all()
            report = (await session.execute(
                select(ResearchReport).where(ResearchReport.query_id == query_id)
            )).scalar_one_or_none()

        pieces: list[tuple[str, str]] = []
        for kind, text in build_passages(sentiments, competitors, trends, report):
            pieces.extend((kind, chunk) for chunk in chunk_text(text, self.settings.knowledge_chunk_size))

        logger.info(f"Processing {len(pieces)} chunks for query {query_id}")
        if not pieces:
            return ProcessResult(chunks=0, embedded=0)

        embeddings = await self._embed([chunk for _, chunk in pieces])
        processed_at = utc_now().isoformat()

        async with self.session_factory() as session:
            for i, (kind, chunk) in enumerate(pieces):
                session.add(KnowledgeChunk(
                    query_id=query_id,
                    content=chunk,
                    embedding=encode_embedding(embeddings[i]) if embeddings else None,
                    chunk_metadata={"kind": kind, "processed_at": processed_at},
                ))
            await session.commit()

        embedded = len(pieces) if embeddings else 0
        logger.info(f"RAG processing completed for query {query_id}: {len(pieces)} chunks, {embedded} embedded")
        return ProcessResult(chunks=len(pieces), embedded=embedded)

    async def search(
        self,
        query: str,
        query_id: Optional[str] = None,
        limit: int = 5,
        threshold: float = 0.7,
    ) -> tuple[list[ChunkMatch], str]:
        """
        Find chunks similar to the query text.

        Returns:
            (matches, method) where method is "vector" or "keyword"
        """
        vectors = await self._embed([query])
        if vectors and await self._has_embedded_chunks(query_id):
            return await self._vector_search(vectors[0], query_id, limit, threshold), "vector"
        return await self._keyword_search(query, query_id, limit), "keyword"

    async def _has_embedded_chunks(self, query_id: Optional[str]) -> bool:
        stmt = select(KnowledgeChunk.id).where(KnowledgeChunk.embedding.is_not(None)).limit(1)
        if query_id:
            stmt = stmt.where(KnowledgeChunk.query_id == query_id)
        async with self.session_factory() as session:
            return (await session.execute(stmt)).first() is not None

    async def _vector_search(
        self,
        vector: list[float],
        query_id: Optional[str],
        limit: int,
        threshold: float,
    ) -> list[ChunkMatch]:
        async with self.session_factory() as session:
            conn = await session.connection()

            if conn.dialect.name == "postgresql" and models.USE_PGVECTOR:
                distance = KnowledgeChunk.embedding.cosine_distance(vector)
                stmt = (
                    select(KnowledgeChunk, distance.label("distance"))
                    .where(KnowledgeChunk.embedding.is_not(None))
                    .where(distance <= 1 - threshold)
                    .order_by(distance)
                    .limit(limit)
                )
                if query_id:
                    stmt = stmt.where(KnowledgeChunk.query_id == query_id)
                rows = (await session.execute(stmt)).all()
                return [
                    ChunkMatch(
                        id=chunk.id,
                        query_id=chunk.query_id,
                        content=chunk.content,
                        similarity=round(1 - float(dist), 4),
                        metadata=chunk.chunk_metadata or {},
                    )
                    for chunk, dist in rows
                ]

            stmt = select(KnowledgeChunk).where(KnowledgeChunk.embedding.is_not(None))
            if query_id:
                stmt = stmt.where(KnowledgeChunk.query_id == query_id)
            chunks = (await session.execute(stmt)).scalars().all()

        matches = []
        for chunk in chunks:
            similarity = cosine_similarity(vector, decode_embedding(chunk.embedding))
            if similarity >= threshold:
                matches.append(ChunkMatch(
                    id=chunk.id,
                    query_id=chunk.query_id,
                    content=chunk.content,
                    similarity=round(similarity, 4),
                    metadata=chunk.chunk_metadata or {},
                ))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def _keyword_search(self, query: str, query_id: Optional[str], limit: int) -> list[ChunkMatch]:
        async with self.session_factory() as session:
            stmt = select(KnowledgeChunk)
            if query_id:
                stmt = stmt.where(KnowledgeChunk.query_id == query_id)
            chunks = (await session.execute(stmt)).scalars().all()

        matches = []
        for chunk in chunks:
            score = keyword_score(query, chunk.content)
            if score > 0:
                matches.append(ChunkMatch(
                    id=chunk.id,
                    query_id=chunk.query_id,
                    content=chunk.content,
                    similarity=round(score, 4),
                    metadata=chunk.chunk_metadata or {},
                ))

        # Sort by score and limit
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]
