"""
Tests for the producer agents and their three-tier fallback:
real signal, generative output, placeholder set.
"""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from app.agents.base import AgentRequest
from app.agents.catalog import brand_tokens, detect_category, is_same_brand, stable_volume
from app.agents.competitor_agent import CompetitorAgent, competitor_name_from_title
from app.agents.sentiment_agent import SentimentAgent, source_from_host
from app.agents.trend_agent import TrendAgent, classify_direction
from app.db.models import (
    CompetitorRecord,
    Provenance,
    QueryType,
    SentimentRecord,
    TrendDirection,
    TrendRecord,
)
from app.exceptions import AgentError
from app.services.search_service import SearchHit
from fakes import FakeLLM, FakeSearch, FakeSocial, json_reply

PHONE_BRANDS = {"Apple", "Samsung", "Google", "OnePlus", "Xiaomi"}


async def _rows(session_factory, model, query_id):
    async with session_factory() as session:
        result = await session.execute(select(model).where(model.query_id == query_id))
        return result.scalars().all()


# ============================================================================
# CATALOG HELPERS
# ============================================================================

class TestCatalog:
    def test_detect_category(self):
        assert detect_category("Nothing Phone 2") == "smartphone"
        assert detect_category("Tesla Model Y") == "electric_vehicle"
        assert detect_category("Dell XPS 15") == "laptop"
        assert detect_category("Acme Analytics") is None

    def test_category_keywords_match_whole_words(self):
        # "ev" must not match inside "every"
        assert detect_category("Everyday Planner") is None

    def test_brand_tokens_skip_generic_words(self):
        assert brand_tokens("Apple iPhone 15") == {"apple", "iphone"}
        assert brand_tokens("Nothing Phone (2)") == {"nothing"}

    def test_is_same_brand(self):
        assert is_same_brand("Samsung Galaxy S24", "Samsung Galaxy S23")
        assert not is_same_brand("Nothing Phone 2", "Google Pixel 8")

    def test_stable_volume_is_deterministic(self):
        first = stable_volume("acme market", 100, 200)
        assert first == stable_volume("Acme Market", 100, 200)
        assert 100 <= first < 200


# ============================================================================
# PLACEHOLDER TIER
# ============================================================================

class TestPlaceholderTier:
    async def test_sentiment_without_keys(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        agent = SentimentAgent(settings, offline_llm, session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.success
        assert result.count == 3
        assert result.provenance == Provenance.placeholder
        rows = await _rows(session_factory, SentimentRecord, query_id)
        assert {row.source for row in rows} == {"Twitter/X", "Reddit", "Product Reviews"}
        assert all("Nothing Phone 2" in row.content for row in rows)
        assert all(row.provenance == Provenance.placeholder for row in rows)

    async def test_phone_subject_gets_phone_competitors(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        agent = CompetitorAgent(settings, offline_llm, session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.count == 5
        rows = await _rows(session_factory, CompetitorRecord, query_id)
        assert all(row.competitor_name.split()[0] in PHONE_BRANDS for row in rows)
        assert all(row.price is not None and row.price > 0 for row in rows)
        assert all(0 <= row.rating <= 5 for row in rows)

    def test_subject_brand_is_excluded(self, settings, offline_llm, session_factory):
        agent = CompetitorAgent(settings, offline_llm, session_factory)
        items = agent.placeholder_records(AgentRequest(query_id="q", query_text="Samsung Galaxy S24"))

        names = [item.competitor_name for item in items]
        assert len(names) == 4
        assert not any(name.startswith("Samsung") for name in names)

    def test_unknown_subject_gets_generic_competitors(self, settings, offline_llm, session_factory):
        agent = CompetitorAgent(settings, offline_llm, session_factory)
        items = agent.placeholder_records(
            AgentRequest(query_id="q", query_text="Acme Analytics", query_type=QueryType.company)
        )

        assert [item.competitor_name for item in items] == [
            "Acme Analytics Alternative A",
            "Acme Analytics Pro",
            "Budget Acme Analytics",
        ]
        assert items[0].price.quantize(Decimal("0.01")) == Decimal("89.99")

    def test_known_trend_family(self, settings, offline_llm, session_factory):
        agent = TrendAgent(settings, offline_llm, session_factory)
        items = agent.placeholder_records(AgentRequest(query_id="q", query_text="Tesla Model Y"))

        assert [item.keyword for item in items][0] == "Tesla Model 3 price"
        assert all(len(item.data_points) == 2 for item in items)
        assert items[0].data_points[1].volume == items[0].search_volume

    def test_generic_trends_are_deterministic(self, settings, offline_llm, session_factory):
        agent = TrendAgent(settings, offline_llm, session_factory)
        request = AgentRequest(query_id="q", query_text="Acme Analytics")

        first = agent.placeholder_records(request)
        second = agent.placeholder_records(request)

        assert [i.search_volume for i in first] == [i.search_volume for i in second]
        assert first[0].keyword == "Acme Analytics market"
        assert 100000 <= first[0].search_volume < 1100000


# ============================================================================
# GENERATIVE TIER
# ============================================================================

class TestGenerativeTier:
    async def test_invalid_items_are_dropped(self, settings, session_factory, make_query):
        query_id = await make_query("Acme Analytics", QueryType.company)
        llm = FakeLLM(json_reply({"sentiments": [
            {"source": "Reddit", "sentiment": "Positive", "confidence": 0.9, "content": "Solid tool", "topics": []},
            {"source": "G2", "sentiment": "negative", "confidence": 85, "content": "Pricey plans", "topics": ["price"]},
            {"source": "Blog", "sentiment": "ecstatic", "confidence": 0.7, "content": "Wow"},
        ]}))
        agent = SentimentAgent(settings, llm, session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Acme Analytics"))

        assert result.count == 2
        assert result.provenance == Provenance.generative
        rows = await _rows(session_factory, SentimentRecord, query_id)
        assert sorted(row.confidence for row in rows) == [0.85, 0.9]

    async def test_competitor_name_and_price_normalized(self, settings, session_factory, make_query):
        query_id = await make_query("Acme Analytics", QueryType.company)
        llm = FakeLLM("```json\n" + json_reply({"competitors": [
            {"name": "Globex Insights", "price": "$1,099.00", "rating": 4.2, "url": None, "features": ["API"]},
            {"name": "Initech Metrics", "price": 49.999, "rating": 9.5},
        ]}) + "\n```")
        agent = CompetitorAgent(settings, llm, session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Acme Analytics"))

        assert result.count == 1
        rows = await _rows(session_factory, CompetitorRecord, query_id)
        assert rows[0].competitor_name == "Globex Insights"
        assert Decimal(str(rows[0].price)) == Decimal("1099.00")

    async def test_trend_camel_case_payload(self, settings, session_factory, make_query):
        query_id = await make_query("Acme Analytics")
        llm = FakeLLM(json_reply({"trends": [{
            "keyword": "acme analytics pricing",
            "searchVolume": 12000,
            "trendDirection": "Increasing",
            "timePeriod": "30d",
            "dataPoints": [{"date": "2024-01-01", "volume": 9000, "interest": 70}],
        }]}))
        agent = TrendAgent(settings, llm, session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Acme Analytics"))

        assert result.provenance == Provenance.generative
        rows = await _rows(session_factory, TrendRecord, query_id)
        assert rows[0].trend_direction == TrendDirection.increasing
        assert rows[0].data_points == [{"date": "2024-01-01", "volume": 9000, "interest": 70}]

    async def test_unparseable_reply_falls_back_to_placeholder(self, settings, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        agent = SentimentAgent(settings, FakeLLM("Sorry, I cannot help with that."), session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.placeholder
        assert result.count == 3

    async def test_provider_error_falls_back_to_placeholder(self, settings, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        agent = TrendAgent(settings, FakeLLM(RuntimeError("All LLM providers failed")), session_factory)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.placeholder
        assert result.count >= 1


# ============================================================================
# REAL-SIGNAL TIER
# ============================================================================

class TestRealSignalTier:
    async def test_social_posts_are_scored(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        social = FakeSocial([
            "I love the new design, amazing camera",
            "Battery life is terrible and slow charging",
        ])
        agent = SentimentAgent(settings, offline_llm, session_factory, social=social)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.real_data
        rows = await _rows(session_factory, SentimentRecord, query_id)
        labels = {row.content: row.sentiment.value for row in rows}
        assert labels["I love the new design, amazing camera"] == "positive"
        assert labels["Battery life is terrible and slow charging"] == "negative"
        assert all(row.source == "Twitter/X" for row in rows)

    async def test_markup_only_post_does_not_drop_batch(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        social = FakeSocial(["Love it, great phone", "<br>", "terrible battery, awful", "amazing camera"])
        agent = SentimentAgent(settings, offline_llm, session_factory, social=social)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.real_data
        rows = await _rows(session_factory, SentimentRecord, query_id)
        assert sorted(row.content for row in rows) == [
            "Love it, great phone", "amazing camera", "terrible battery, awful",
        ]

    async def test_competitors_from_search_results(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        search = FakeSearch(hits=[
            SearchHit(
                title="Best Nothing Phone 2 alternatives in 2024",
                url="https://example.com/best",
                snippet="Our picks",
                source="example.com",
            ),
            SearchHit(
                title="Nothing Phone (2) - Nothing",
                url="https://nothing.tech",
                snippet="Glyph interface",
                source="nothing.tech",
            ),
            SearchHit(
                title="Samsung Galaxy S23 Ultra - Samsung US",
                url="https://www.samsung.com/us/s23-ultra",
                snippet="From $1,199.99. Rated 4.6 out of 5. 5G and wireless charging.",
                source="www.samsung.com",
            ),
        ])
        agent = CompetitorAgent(settings, offline_llm, session_factory, search=search)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.real_data
        rows = await _rows(session_factory, CompetitorRecord, query_id)
        assert len(rows) == 1
        row = rows[0]
        assert row.competitor_name == "Samsung Galaxy S23 Ultra"
        assert Decimal(str(row.price)) == Decimal("1199.99")
        assert row.rating == 4.6
        assert row.features == ["5G", "wireless charging"]

    async def test_trend_direction_from_result_counts(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Acme Analytics")
        # 30-day rate doubles the 90-day rate for every keyword
        search = FakeSearch(totals=lambda query, window: 2000 if window == "d30" else 3000)
        agent = TrendAgent(settings, offline_llm, session_factory, search=search)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Acme Analytics"))

        assert result.provenance == Provenance.real_data
        assert result.count == 4
        rows = await _rows(session_factory, TrendRecord, query_id)
        assert {row.keyword for row in rows} == {
            "Acme Analytics", "Acme Analytics reviews", "Acme Analytics price", "Acme Analytics alternatives",
        }
        assert all(row.trend_direction == TrendDirection.increasing for row in rows)
        assert all(row.search_volume == 2000 for row in rows)

    async def test_search_failure_falls_through(self, settings, offline_llm, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        search = FakeSearch(error=httpx.ConnectError("unreachable"))
        agent = CompetitorAgent(settings, offline_llm, session_factory, search=search)

        result = await agent.run(AgentRequest(query_id=query_id, query_text="Nothing Phone 2"))

        assert result.provenance == Provenance.placeholder
        assert result.count == 5


# ============================================================================
# HELPERS AND PERSISTENCE
# ============================================================================

class TestHelpers:
    def test_competitor_name_from_title(self):
        assert competitor_name_from_title("Pixel 8 - Google Store") == "Pixel 8"
        assert competitor_name_from_title("OnePlus 11 | OnePlus United States") == "OnePlus 11"

    def test_source_from_host(self):
        assert source_from_host("www.reddit.com") == "Reddit"
        assert source_from_host("old.reddit.com") == "Reddit"
        assert source_from_host("techradar.com") == "techradar.com"

    @pytest.mark.parametrize("recent,baseline,expected", [
        (2000, 3000, TrendDirection.increasing),
        (1000, 3000, TrendDirection.stable),
        (500, 3000, TrendDirection.decreasing),
        (10, 0, TrendDirection.increasing),
        (0, 0, TrendDirection.stable),
    ])
    def test_classify_direction(self, recent, baseline, expected):
        assert classify_direction(recent, baseline) == expected


class TestPersistence:
    async def test_unknown_query_raises_agent_error(self, settings, offline_llm, session_factory):
        agent = SentimentAgent(settings, offline_llm, session_factory)

        with pytest.raises(AgentError):
            await agent.run(AgentRequest(query_id="missing-query", query_text="Nothing Phone 2"))
