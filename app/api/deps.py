"""
Shared FastAPI dependencies.

Routers get settings, the session factory, the LLM service and the wired
pipeline from here, so tests can swap any of them with dependency_overrides.
"""

from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.insight_agent import InsightAggregator
from app.agents.orchestrator import ResearchOrchestrator, build_orchestrator
from app.config import Settings, get_settings
from app.db.database import async_session
from app.services.assistant_service import AssistantService
from app.services.knowledge_service import KnowledgeService
from app.services.llm_service import LLMService, get_llm_service
from app.services.report_service import ReportRenderer
from app.services.search_service import SearchService
from app.services.social_service import SocialService
from app.services.storage_service import StorageService


def get_app_settings() -> Settings:
    return get_settings()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


def get_llm() -> LLMService:
    return get_llm_service()


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_search(settings: Settings = Depends(get_app_settings)) -> SearchService:
    return SearchService(settings)


def get_social(settings: Settings = Depends(get_app_settings)) -> SocialService:
    return SocialService(settings)


def get_storage(settings: Settings = Depends(get_app_settings)) -> StorageService:
    return StorageService(settings)


def get_knowledge(
    settings: Settings = Depends(get_app_settings),
    llm: LLMService = Depends(get_llm),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> KnowledgeService:
    return KnowledgeService(settings, llm, session_factory)


def get_renderer(
    settings: Settings = Depends(get_app_settings),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    storage: StorageService = Depends(get_storage),
) -> ReportRenderer:
    return ReportRenderer(settings, session_factory, storage=storage)


def get_insight(
    settings: Settings = Depends(get_app_settings),
    llm: LLMService = Depends(get_llm),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> InsightAggregator:
    return InsightAggregator(settings, llm, session_factory)


def get_orchestrator(
    settings: Settings = Depends(get_app_settings),
    llm: LLMService = Depends(get_llm),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    search: SearchService = Depends(get_search),
    social: SocialService = Depends(get_social),
    storage: StorageService = Depends(get_storage),
) -> ResearchOrchestrator:
    return build_orchestrator(settings, session_factory, llm, search=search, social=social, storage=storage)


def get_assistant(
    settings: Settings = Depends(get_app_settings),
    llm: LLMService = Depends(get_llm),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    knowledge: KnowledgeService = Depends(get_knowledge),
) -> AssistantService:
    return AssistantService(settings, llm, session_factory, knowledge=knowledge)
