"""Script to create all database tables."""
import asyncio

from app.db.database import init_db
from app.db.models import (  # noqa: F401
    ResearchQuery, SentimentRecord, CompetitorRecord, TrendRecord,
    ResearchReport, KnowledgeChunk,
)


async def create_tables():
    """Create all tables (and the pgvector extension on PostgreSQL)."""
    await init_db()
    print("Tables created successfully!")

if __name__ == "__main__":
    asyncio.run(create_tables())
