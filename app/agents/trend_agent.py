"""
Trend Agent

Estimates search interest for the subject and a few related keywords.
Real signal compares web result counts for the last 30 days against the
last 90 days.
"""

import asyncio
import logging
from typing import Optional

from app.agents.base import AgentKind, AgentRequest, ProducerAgent
from app.agents.catalog import CATEGORY_TRENDS, detect_trend_family, stable_volume
from app.agents.prompts import PromptRequest, trend_prompt
from app.db.models import Provenance, TrendDirection, TrendRecord
from app.models.schemas import TrendItem, TrendPoint
from app.utils.datetime_utils import days_ago, iso_date

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
BASELINE_DAYS = 90
STABLE_BAND = 0.10  # +/-10% change in daily rate counts as stable

KEYWORD_SUFFIXES = ("", " reviews", " price", " alternatives")


def classify_direction(recent_count: int, baseline_count: int) -> TrendDirection:
    """Compare daily result rates of the recent window against the longer baseline."""
    recent_rate = recent_count / RECENT_DAYS
    baseline_rate = baseline_count / BASELINE_DAYS
    if baseline_rate == 0:
        return TrendDirection.increasing if recent_rate > 0 else TrendDirection.stable

    change = (recent_rate - baseline_rate) / baseline_rate
    if change > STABLE_BAND:
        return TrendDirection.increasing
    if change < -STABLE_BAND:
        return TrendDirection.decreasing
    return TrendDirection.stable


def _interest(volume: int, peak: int) -> int:
    return round(100 * volume / peak) if peak else 0


class TrendAgent(ProducerAgent):
    kind = AgentKind.TREND
    item_model = TrendItem
    payload_key = "trends"

    async def _keyword_trend(self, keyword: str) -> Optional[TrendItem]:
        recent, baseline = await asyncio.gather(
            self.search.total_results(keyword, date_restrict=f"d{RECENT_DAYS}"),
            self.search.total_results(keyword, date_restrict=f"d{BASELINE_DAYS}"),
        )
        if recent == 0 and baseline == 0:
            return None

        # Baseline scaled to a 30-day equivalent so both points are comparable
        baseline_30d = round(baseline * RECENT_DAYS / BASELINE_DAYS)
        peak = max(recent, baseline_30d)
        return TrendItem(
            keyword=keyword,
            search_volume=recent,
            trend_direction=classify_direction(recent, baseline),
            time_period=f"{RECENT_DAYS}d",
            data_points=[
                TrendPoint(date=iso_date(days_ago(BASELINE_DAYS)), volume=baseline_30d,
                           interest=_interest(baseline_30d, peak)),
                TrendPoint(date=iso_date(days_ago(0)), volume=recent, interest=_interest(recent, peak)),
            ],
        )

    async def fetch_real_signal(self, request: AgentRequest) -> list[TrendItem]:
        items = []
        for suffix in KEYWORD_SUFFIXES:
            keyword = f"{request.query_text}{suffix}"
            try:
                item = await self._keyword_trend(keyword)
            except Exception as e:
                logger.warning(f"Trend lookup failed for '{keyword}': {e}")
                continue
            if item:
                items.append(item)
        return items

    def build_prompt(self, request: AgentRequest) -> PromptRequest:
        return trend_prompt(request.query_text, request.query_type)

    def placeholder_records(self, request: AgentRequest) -> list[TrendItem]:
        subject = request.query_text
        family = detect_trend_family(subject)

        if family:
            base = CATEGORY_TRENDS[family]
        else:
            base = [
                (f"{subject} market", stable_volume(f"{subject} market", 100000, 1100000), "increasing", "30d"),
                (f"{subject} reviews", stable_volume(f"{subject} reviews", 50000, 550000), "stable", "90d"),
                (f"{subject} alternatives", stable_volume(f"{subject} alternatives", 30000, 330000), "increasing", "30d"),
            ]

        past = iso_date(days_ago(30))
        today = iso_date(days_ago(0))
        return [
            TrendItem(
                keyword=keyword,
                search_volume=volume,
                trend_direction=direction,
                time_period=period,
                data_points=[
                    TrendPoint(date=past, volume=int(volume * 0.8), interest=78),
                    TrendPoint(date=today, volume=volume, interest=89),
                ],
            )
            for keyword, volume, direction, period in base
        ]

    def to_row(self, request: AgentRequest, item: TrendItem, provenance: Provenance) -> TrendRecord:
        return TrendRecord(
            query_id=request.query_id,
            keyword=item.keyword,
            search_volume=item.search_volume,
            trend_direction=item.trend_direction,
            time_period=item.time_period,
            data_points=[point.model_dump() for point in item.data_points],
            provenance=provenance,
        )
