import os
import enum
import json
import uuid

from sqlalchemy import Column, String, Text, DateTime, Float, BigInteger, Enum, JSON, ForeignKey, Numeric, Index
from sqlalchemy.orm import relationship

from app.db.database import Base
from app.utils.datetime_utils import utc_now

# Store embeddings as JSON text when pgvector is disabled (e.g. SQLite)
USE_PGVECTOR = os.environ.get("USE_PGVECTOR", "true").lower() == "true"
EMBEDDING_DIMENSIONS = 1536

if USE_PGVECTOR:
    from pgvector.sqlalchemy import Vector
    VECTOR_TYPE = Vector(EMBEDDING_DIMENSIONS)
else:
    VECTOR_TYPE = Text


def _new_id() -> str:
    return str(uuid.uuid4())


def encode_embedding(embedding: list[float] | None):
    """Convert an embedding to the column's storage form."""
    if embedding is None:
        return None
    if USE_PGVECTOR:
        return embedding
    return json.dumps(embedding)


def decode_embedding(value) -> list[float] | None:
    """Inverse of encode_embedding."""
    if value is None:
        return None
    if isinstance(value, str):
        return json.loads(value)
    return [float(v) for v in value]


# ============== Enums ==============

class QueryType(str, enum.Enum):
    product = "product"
    company = "company"


class QueryStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class SentimentLabel(str, enum.Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class TrendDirection(str, enum.Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class Provenance(str, enum.Enum):
    """Which fallback tier produced a row."""
    real_data = "real_data"
    generative = "generative"
    placeholder = "placeholder"


# ============== Research Models ==============

class ResearchQuery(Base):
    """Root aggregate. Every derived row hangs off a query and is removed with it."""
    __tablename__ = "research_queries"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_text = Column(Text, nullable=False)
    query_type = Column(Enum(QueryType), nullable=False, default=QueryType.product)
    status = Column(Enum(QueryStatus), nullable=False, default=QueryStatus.pending, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # passive_deletes defers to ON DELETE CASCADE instead of loading children
    sentiments = relationship(
        "SentimentRecord", back_populates="query", cascade="all, delete-orphan", passive_deletes=True
    )
    competitors = relationship(
        "CompetitorRecord", back_populates="query", cascade="all, delete-orphan", passive_deletes=True
    )
    trends = relationship(
        "TrendRecord", back_populates="query", cascade="all, delete-orphan", passive_deletes=True
    )
    report = relationship(
        "ResearchReport", back_populates="query", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    chunks = relationship(
        "KnowledgeChunk", back_populates="query", cascade="all, delete-orphan", passive_deletes=True
    )


class SentimentRecord(Base):
    __tablename__ = "sentiment_analysis"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_id = Column(String(36), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True)
    source = Column(String(100), nullable=False)
    sentiment = Column(Enum(SentimentLabel), nullable=False)
    confidence = Column(Float, nullable=False, default=0.5)
    content = Column(Text, nullable=False)
    topics = Column(JSON, default=list)
    provenance = Column(Enum(Provenance), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    query = relationship("ResearchQuery", back_populates="sentiments")


class CompetitorRecord(Base):
    __tablename__ = "competitor_data"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_id = Column(String(36), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True)
    competitor_name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=True)
    rating = Column(Float, nullable=True)
    url = Column(Text, nullable=True)
    features = Column(JSON, default=list)
    provenance = Column(Enum(Provenance), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    last_updated = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    query = relationship("ResearchQuery", back_populates="competitors")


class TrendRecord(Base):
    __tablename__ = "trend_data"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_id = Column(String(36), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True)
    keyword = Column(String(255), nullable=False)
    search_volume = Column(BigInteger, nullable=True)
    trend_direction = Column(Enum(TrendDirection), nullable=False, default=TrendDirection.stable)
    time_period = Column(String(20), nullable=False)
    data_points = Column(JSON, default=list)  # [{"date", "volume", "interest"}]
    provenance = Column(Enum(Provenance), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    query = relationship("ResearchQuery", back_populates="trends")


class ResearchReport(Base):
    """At most one per query; the renderer may attach document_url afterwards."""
    __tablename__ = "research_reports"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_id = Column(
        String(36), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    title = Column(String(500), nullable=False)
    summary = Column(Text, nullable=True)
    insights = Column(JSON, default=list)
    recommendations = Column(JSON, default=list)
    document_url = Column(Text, nullable=True)
    provenance = Column(Enum(Provenance), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    query = relationship("ResearchQuery", back_populates="report")


class KnowledgeChunk(Base):
    __tablename__ = "research_chunks"

    id = Column(String(36), primary_key=True, default=_new_id)
    query_id = Column(String(36), ForeignKey("research_queries.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    embedding = Column(VECTOR_TYPE, nullable=True)
    chunk_metadata = Column("metadata", JSON, default=dict)  # renamed to avoid SQLAlchemy reserved name
    created_at = Column(DateTime(timezone=True), default=utc_now)

    query = relationship("ResearchQuery", back_populates="chunks")


Index("idx_research_queries_owner_created", ResearchQuery.owner_id, ResearchQuery.created_at)
