"""Tests for the research assistant: action tags, grounding context, fallback reply."""

import pytest

from app.db.models import CompetitorRecord, Provenance
from app.exceptions import QueryNotFoundError
from app.services.assistant_service import FALLBACK_MESSAGE, AssistantService, detect_assistant_action
from app.services.knowledge_service import KnowledgeService
from fakes import FakeLLM


async def _seed_competitor(session_factory, query_id, name="Google Pixel 8"):
    async with session_factory() as session:
        session.add(CompetitorRecord(
            query_id=query_id, competitor_name=name, price=699.00, rating=4.4,
            features=["Tensor G3"], provenance=Provenance.placeholder,
        ))
        await session.commit()


class TestDetectAction:
    @pytest.mark.parametrize("message,expected", [
        ("How do sentiment and trend data compare?", "show_trends"),
        ("Show me a competitor comparison", "show_comparison"),
        ("What if the price drops by 10%?", "generate_report"),
        ("Please generate a report", "generate_report"),
        ("Download the report", "generate_report"),
        ("Who are the main competitors?", None),
        ("Hello there", None),
    ])
    def test_action_tags(self, message, expected):
        assert detect_assistant_action(message) == expected


class TestAssistantService:
    async def test_fallback_without_provider(self, settings, offline_llm, session_factory):
        assistant = AssistantService(settings, offline_llm, session_factory)

        reply = await assistant.respond("Please generate a report", "user-1")

        assert reply.response == FALLBACK_MESSAGE
        assert reply.action == "generate_report"

    async def test_fallback_on_provider_failure(self, settings, session_factory):
        assistant = AssistantService(settings, FakeLLM(RuntimeError("All LLM providers failed")), session_factory)

        reply = await assistant.respond("Hello there", "user-1")

        assert reply.response == FALLBACK_MESSAGE
        assert reply.action is None

    async def test_context_uses_owner_rows(self, settings, session_factory, make_query):
        mine = await make_query("Nothing Phone 2", owner_id="user-1")
        theirs = await make_query("Acme Analytics", owner_id="user-2")
        await _seed_competitor(session_factory, mine, "Google Pixel 8")
        await _seed_competitor(session_factory, theirs, "Globex Insights")
        llm = FakeLLM("Pixel 8 is the closest rival.")
        assistant = AssistantService(settings, llm, session_factory)

        reply = await assistant.respond("Who are the main competitors?", "user-1")

        assert reply.response == "Pixel 8 is the closest rival."
        prompt = llm.prompt_text()
        assert "Google Pixel 8" in prompt
        assert "Globex Insights" not in prompt

    async def test_query_scoped_context_includes_knowledge(
        self, settings, offline_llm, session_factory, make_query
    ):
        query_id = await make_query("Nothing Phone 2", owner_id="user-1")
        await _seed_competitor(session_factory, query_id)
        knowledge = KnowledgeService(settings, offline_llm, session_factory)
        await knowledge.process_query(query_id)
        llm = FakeLLM("ok")
        assistant = AssistantService(settings, llm, session_factory, knowledge=knowledge)

        await assistant.respond("Tell me about Pixel pricing", "user-1", query_id=query_id)

        prompt = llm.prompt_text()
        assert "Research subject: Nothing Phone 2" in prompt
        assert "Relevant Research Notes" in prompt

    async def test_query_of_another_owner_is_not_found(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2", owner_id="user-2")
        assistant = AssistantService(settings, offline_llm, session_factory)

        with pytest.raises(QueryNotFoundError):
            await assistant.respond("Hello", "user-1", query_id=query_id)
