"""Tests for the what-if price scenario model."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.db.models import CompetitorRecord, Provenance, SentimentLabel, SentimentRecord
from app.exceptions import QueryNotFoundError
from app.services.scenario_service import (
    DEFAULT_BASELINE_SENTIMENT,
    ScenarioError,
    competitor_response_for,
    run_price_scenario,
    sentiment_index,
    simulate_price_change,
)


class TestSimulatePriceChange:
    def test_price_increase_lowers_sentiment(self):
        scenario = simulate_price_change(120.0, 100.0)

        assert scenario.price_change_pct == 20.0
        assert scenario.expected_sentiment == DEFAULT_BASELINE_SENTIMENT - 10.0
        assert scenario.competitor_response == "Competitors may launch promotional campaigns"

    def test_price_cut_raises_sentiment(self):
        scenario = simulate_price_change(80.0, 100.0, baseline_sentiment=60.0)

        assert scenario.expected_sentiment == 70.0
        assert scenario.competitor_response == "Competitors likely to follow with price reductions"

    def test_expected_sentiment_is_clamped(self):
        assert simulate_price_change(1000.0, 100.0).expected_sentiment == 0.0
        assert simulate_price_change(1.0, 100.0, baseline_sentiment=90.0).expected_sentiment == 100.0

    @pytest.mark.parametrize("proposed,baseline", [(0, 100), (-5, 100), (100, 0)])
    def test_non_positive_prices_rejected(self, proposed, baseline):
        with pytest.raises(ScenarioError):
            simulate_price_change(proposed, baseline)

    @pytest.mark.parametrize("change,expected", [
        (10.0, "No significant response expected"),
        (-10.0, "No significant response expected"),
        (10.5, "Competitors may launch promotional campaigns"),
        (-10.5, "Competitors likely to follow with price reductions"),
    ])
    def test_response_band_edges(self, change, expected):
        assert competitor_response_for(change) == expected


class TestSentimentIndex:
    def test_confidence_weighted(self):
        rows = [
            SimpleNamespace(sentiment=SentimentLabel.positive, confidence=0.75),
            SimpleNamespace(sentiment=SentimentLabel.negative, confidence=0.25),
        ]
        assert sentiment_index(rows) == pytest.approx(75.0)

    def test_no_rows(self):
        assert sentiment_index([]) is None


class TestRunPriceScenario:
    async def test_baseline_from_competitor_prices(self, session_factory, make_query):
        query_id = await make_query("Nothing Phone 2")
        async with session_factory() as session:
            session.add_all([
                CompetitorRecord(query_id=query_id, competitor_name="A", price=Decimal("600.00"),
                                 provenance=Provenance.placeholder),
                CompetitorRecord(query_id=query_id, competitor_name="B", price=Decimal("800.00"),
                                 provenance=Provenance.placeholder),
                CompetitorRecord(query_id=query_id, competitor_name="C", price=None,
                                 provenance=Provenance.placeholder),
                SentimentRecord(query_id=query_id, source="Reddit", sentiment=SentimentLabel.neutral,
                                confidence=0.6, content="Fine", provenance=Provenance.real_data),
            ])
            await session.commit()

            scenario = await run_price_scenario(session, query_id, proposed_price=770.0)

        assert scenario.baseline_price == 700.0
        assert scenario.price_change_pct == 10.0
        assert scenario.baseline_sentiment == 50.0
        assert scenario.expected_sentiment == 45.0

    async def test_explicit_baseline_without_competitors(self, session_factory, make_query):
        query_id = await make_query("Acme Analytics")
        async with session_factory() as session:
            scenario = await run_price_scenario(session, query_id, proposed_price=50.0, baseline_price=100.0)

        assert scenario.baseline_sentiment == DEFAULT_BASELINE_SENTIMENT
        assert scenario.expected_sentiment == 100.0

    async def test_no_baseline_available(self, session_factory, make_query):
        query_id = await make_query("Acme Analytics")
        async with session_factory() as session:
            with pytest.raises(ScenarioError):
                await run_price_scenario(session, query_id, proposed_price=50.0)

    async def test_unknown_query(self, session_factory):
        async with session_factory() as session:
            with pytest.raises(QueryNotFoundError):
                await run_price_scenario(session, "missing", proposed_price=50.0)
