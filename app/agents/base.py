"""
Base Agent Classes

Foundation for the producer agents (sentiment, competitor, trend).

Every producer follows the same three-tier fallback:
1. Real signal from an external adapter (search / social), when configured
2. Generative model output, validated item by item
3. A fixed subject-aware placeholder set that is never empty

Records are persisted one at a time with an independent commit, so one bad
row never rolls back the rest.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.agents.prompts import PromptRequest
from app.config import Settings
from app.db.models import Provenance, QueryType
from app.exceptions import AgentError, ProviderNotConfiguredError
from app.services.llm_service import LLMService, parse_json_payload
from app.services.search_service import SearchService
from app.services.social_service import SocialService

logger = logging.getLogger(__name__)


# =============================================================================
# Enums and Data Classes
# =============================================================================

class AgentKind(str, Enum):
    """Producer agents run by the orchestrator."""
    SENTIMENT = "sentiment"
    COMPETITOR = "competitor"
    TREND = "trend"


@dataclass
class AgentRequest:
    """Input shared by every producer agent."""
    query_id: str
    query_text: str
    query_type: QueryType = QueryType.product


@dataclass
class AgentResult:
    """Outcome of one agent run."""
    agent: AgentKind
    success: bool
    count: int = 0
    provenance: Optional[Provenance] = None
    duration_ms: float = 0.0
    error: Optional[str] = None


# =============================================================================
# Producer Agent
# =============================================================================

class ProducerAgent(ABC):
    """
    Base class for agents that populate one table for a research query.

    Subclasses provide the tier-specific pieces: real-signal fetch, prompt,
    placeholder set, and the mapping from a validated item to an ORM row.
    """

    kind: AgentKind
    item_model: type[BaseModel]
    payload_key: str  # top-level list key in the generated JSON

    def __init__(
        self,
        settings: Settings,
        llm: LLMService,
        session_factory: async_sessionmaker[AsyncSession],
        search: Optional[SearchService] = None,
        social: Optional[SocialService] = None,
    ):
        self.settings = settings
        self.llm = llm
        self.session_factory = session_factory
        self.search = search or SearchService(settings)
        self.social = social or SocialService(settings)

    @property
    def name(self) -> str:
        return self.kind.value

    # -------------------------------------------------------------------------
    # Tier hooks
    # -------------------------------------------------------------------------

    @property
    def real_signal_available(self) -> bool:
        return self.search.configured

    async def fetch_real_signal(self, request: AgentRequest) -> list[BaseModel]:
        """Tier 1. Return validated items built from external data."""
        return []

    @abstractmethod
    def build_prompt(self, request: AgentRequest) -> PromptRequest:
        """Tier 2 prompt."""
        pass

    @abstractmethod
    def placeholder_records(self, request: AgentRequest) -> list[BaseModel]:
        """Tier 3. Must return at least one item and never raise."""
        pass

    @abstractmethod
    def to_row(self, request: AgentRequest, item: BaseModel, provenance: Provenance) -> Any:
        """Map a validated item to an ORM instance."""
        pass

    def parse_generated(self, text: str) -> list[BaseModel]:
        """Validate each generated item independently; invalid ones are dropped."""
        payload = parse_json_payload(text)
        raw_items = payload.get(self.payload_key)
        if not isinstance(raw_items, list):
            raise ValueError(f"Generated payload has no '{self.payload_key}' list")

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(self.item_model.model_validate(raw))
            except ValidationError as e:
                logger.debug(f"{self.name} agent dropped invalid item: {e.error_count()} errors")
        return items

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def collect(self, request: AgentRequest) -> tuple[list[BaseModel], Provenance]:
        """Walk the fallback tiers until one yields items."""
        if self.real_signal_available:
            try:
                items = await self.fetch_real_signal(request)
                if items:
                    logger.info(f"{self.name} agent: {len(items)} records from real signal")
                    return items, Provenance.real_data
                logger.info(f"{self.name} agent: real signal returned nothing, trying generative tier")
            except ProviderNotConfiguredError:
                pass
            except Exception as e:
                logger.warning(f"{self.name} agent real-signal fetch failed: {e}")

        if self.llm.available:
            prompt = self.build_prompt(request)
            try:
                completion = await self.llm.chat(
                    prompt.to_messages(),
                    task_type=prompt.task_type,
                    temperature=prompt.temperature,
                    max_tokens=prompt.max_tokens,
                    json_mode=prompt.json_mode,
                )
                items = self.parse_generated(completion.content)
                if items:
                    logger.info(f"{self.name} agent: {len(items)} records from generative model")
                    return items, Provenance.generative
                logger.warning(f"{self.name} agent: generated payload had no valid items")
            except ProviderNotConfiguredError:
                pass
            except Exception as e:
                logger.warning(f"{self.name} agent generative tier failed: {e}")

        items = self.placeholder_records(request)
        logger.info(f"{self.name} agent: using {len(items)} placeholder records")
        return items, Provenance.placeholder

    async def persist(self, request: AgentRequest, items: list[BaseModel], provenance: Provenance) -> int:
        """
        Insert each record with its own commit.

        Raises:
            AgentError: If items were given and none could be stored
        """
        stored = 0
        last_error: Optional[Exception] = None

        for item in items:
            try:
                async with self.session_factory() as session:
                    session.add(self.to_row(request, item, provenance))
                    await session.commit()
                stored += 1
            except Exception as e:
                last_error = e
                logger.error(f"{self.name} agent failed to store record for query {request.query_id}: {e}")

        if items and stored == 0:
            raise AgentError(self.name, f"no records stored ({last_error})")

        return stored

    async def run(self, request: AgentRequest) -> AgentResult:
        """Collect and persist records for one query."""
        start = time.perf_counter()
        logger.info(f"{self.name} agent processing: {request.query_id} '{request.query_text}'")

        items, provenance = await self.collect(request)
        count = await self.persist(request, items, provenance)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{self.name} agent completed for query {request.query_id}: {count} records in {duration_ms:.0f}ms")

        return AgentResult(
            agent=self.kind,
            success=True,
            count=count,
            provenance=provenance,
            duration_ms=duration_ms,
        )
