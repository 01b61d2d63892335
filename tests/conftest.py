"""
Pytest configuration and fixtures for the market research backend.

Every test gets its own on-disk SQLite database and a Settings object with
all provider keys blank, so nothing reaches the network.
"""

import os

# Must be set before app modules are imported: the module-level engine and
# the embedding column type are chosen at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["USE_PGVECTOR"] = "false"
for _key in (
    "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "GROQ_API_KEY",
    "GOOGLE_SEARCH_API_KEY", "GOOGLE_SEARCH_ENGINE_ID", "TWITTER_BEARER_TOKEN",
    "SUPABASE_URL", "SUPABASE_SERVICE_KEY", "SENTRY_DSN",
):
    os.environ[_key] = ""

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.db.database import create_engine_for_url, init_db
from app.db.models import QueryType, ResearchQuery
from app.services.llm_service import LLMService


# ============================================================================
# CORE FIXTURES
# ============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with every provider key blank and fast timeouts."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        openai_api_key="",
        anthropic_api_key="",
        google_api_key="",
        groq_api_key="",
        google_search_api_key="",
        google_search_engine_id="",
        twitter_bearer_token="",
        supabase_url="",
        supabase_service_key="",
        reports_output_path=str(tmp_path / "reports"),
        render_pdf=False,
        external_call_timeout_seconds=1.0,
        agent_timeout_seconds=5.0,
        stage_timeout_seconds=5.0,
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine_for_url(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def offline_llm(settings) -> LLMService:
    """The real LLM service with no provider configured."""
    return LLMService(settings)


@pytest.fixture
def make_query(session_factory):
    """Factory that inserts a pending research query and returns its id."""

    async def _make(
        text: str = "Nothing Phone 2",
        query_type: QueryType = QueryType.product,
        owner_id: str = "user-1",
    ) -> str:
        async with session_factory() as session:
            query = ResearchQuery(query_text=text, query_type=query_type, owner_id=owner_id)
            session.add(query)
            await session.commit()
            return query.id

    return _make


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model for one query."""

    async def _count(model, query_id: str) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(model).where(model.query_id == query_id)
            )
            return result.scalar_one()

    return _count


# ============================================================================
# HTTP CLIENT
# ============================================================================

@pytest.fixture
def app_llm(offline_llm):
    """LLM used by the HTTP app; override in a test module to script replies."""
    return offline_llm


@pytest.fixture
async def client(settings, session_factory, app_llm):
    from app.api import deps
    from app.main import app
    from app.middleware.rate_limit import limiter

    app.dependency_overrides[deps.get_app_settings] = lambda: settings
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_llm] = lambda: app_llm
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    limiter.enabled = True
