"""
What-if pricing scenarios.

Projects how a price change would move customer sentiment and how
competitors are likely to respond, using the query's collected data as the
baseline.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import CompetitorRecord, SentimentLabel, SentimentRecord
from app.services.query_service import get_query

logger = logging.getLogger(__name__)

DEFAULT_BASELINE_SENTIMENT = 85.0
SENTIMENT_SENSITIVITY = 0.5  # sentiment points lost per 1% price increase
RESPONSE_BAND_PCT = 10.0

LABEL_SCORES = {
    SentimentLabel.positive: 100.0,
    SentimentLabel.neutral: 50.0,
    SentimentLabel.negative: 0.0,
}


class ScenarioError(ValueError):
    """The scenario cannot be computed from the given inputs."""


@dataclass
class PriceScenario:
    proposed_price: float
    baseline_price: float
    price_change_pct: float
    baseline_sentiment: float
    expected_sentiment: float
    competitor_response: str


def competitor_response_for(price_change_pct: float) -> str:
    if price_change_pct > RESPONSE_BAND_PCT:
        return "Competitors may launch promotional campaigns"
    if price_change_pct < -RESPONSE_BAND_PCT:
        return "Competitors likely to follow with price reductions"
    return "No significant response expected"


def simulate_price_change(
    proposed_price: float,
    baseline_price: float,
    baseline_sentiment: float = DEFAULT_BASELINE_SENTIMENT,
) -> PriceScenario:
    """
    Project sentiment and competitor response for a proposed price.

    Raises:
        ScenarioError: Non-positive prices
    """
    if proposed_price <= 0 or baseline_price <= 0:
        raise ScenarioError("Prices must be positive")

    change_pct = (proposed_price - baseline_price) / baseline_price * 100
    expected = baseline_sentiment - SENTIMENT_SENSITIVITY * change_pct
    expected = max(0.0, min(100.0, expected))

    return PriceScenario(
        proposed_price=round(proposed_price, 2),
        baseline_price=round(baseline_price, 2),
        price_change_pct=round(change_pct, 2),
        baseline_sentiment=round(baseline_sentiment, 1),
        expected_sentiment=round(expected, 1),
        competitor_response=competitor_response_for(change_pct),
    )


def sentiment_index(rows) -> Optional[float]:
    """Confidence-weighted 0-100 index over sentiment rows; None without usable rows."""
    total_weight = 0.0
    weighted = 0.0
    for row in rows:
        weight = row.confidence or 0.0
        weighted += LABEL_SCORES.get(SentimentLabel(row.sentiment), 50.0) * weight
        total_weight += weight
    if total_weight == 0:
        return None
    return weighted / total_weight


async def run_price_scenario(
    db: AsyncSession,
    query_id: str,
    proposed_price: float,
    baseline_price: Optional[float] = None,
) -> PriceScenario:
    """
    Price scenario for a query, baselined on its competitor prices and sentiment.

    Raises:
        QueryNotFoundError: Unknown query
        ScenarioError: No baseline price given and no competitor prices collected
    """
    await get_query(db, query_id)

    if baseline_price is None:
        prices = (await db.execute(
            select(CompetitorRecord.price)
            .where(CompetitorRecord.query_id == query_id)
            .where(CompetitorRecord.price.is_not(None))
        )).scalars().all()
        if not prices:
            raise ScenarioError("No baseline price available: provide baselinePrice or collect competitor prices")
        baseline_price = float(sum(prices) / len(prices))

    sentiments = (await db.execute(
        select(SentimentRecord).where(SentimentRecord.query_id == query_id)
    )).scalars().all()
    index = sentiment_index(sentiments)
    baseline_sentiment = index if index is not None else DEFAULT_BASELINE_SENTIMENT

    scenario = simulate_price_change(proposed_price, baseline_price, baseline_sentiment)
    logger.info(
        f"Price scenario for query {query_id}: {scenario.price_change_pct:+.1f}% -> "
        f"sentiment {scenario.expected_sentiment}"
    )
    return scenario
