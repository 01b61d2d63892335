"""
Sentiment Agent

Collects public opinion about the subject. Real signal comes from Twitter/X
recent posts and web review snippets, scored with the keyword lexicon.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from app.agents.base import AgentKind, AgentRequest, ProducerAgent
from app.agents.prompts import PromptRequest, sentiment_prompt
from app.db.models import Provenance, SentimentRecord
from app.models.schemas import SentimentItem
from app.utils.text_analysis import classify_sentiment, extract_topics, strip_html

logger = logging.getLogger(__name__)

MAX_REAL_ITEMS = 8
MAX_CONTENT_LENGTH = 500

SOURCE_NAMES = {
    "reddit.com": "Reddit",
    "youtube.com": "YouTube",
    "amazon.com": "Product Reviews",
    "bestbuy.com": "Product Reviews",
    "trustpilot.com": "Product Reviews",
    "news.google.com": "News Articles",
}


def source_from_host(host: str) -> str:
    host = host.lower().removeprefix("www.")
    for domain, name in SOURCE_NAMES.items():
        if host == domain or host.endswith("." + domain):
            return name
    return host or "Web"


def score_text(source: str, text: str) -> Optional[SentimentItem]:
    """Build a sentiment item from free text with lexicon scoring; None when nothing usable remains."""
    cleaned = strip_html(text)
    if not cleaned:
        return None
    label, confidence = classify_sentiment(cleaned)
    try:
        return SentimentItem(
            source=source[:100] or "Web",
            sentiment=label,
            confidence=confidence,
            content=cleaned[:MAX_CONTENT_LENGTH],
            topics=extract_topics(cleaned),
        )
    except ValidationError as e:
        logger.debug(f"Dropped unscorable text from {source}: {e.error_count()} errors")
        return None


def score_all(entries) -> list[SentimentItem]:
    """Score (source, text) pairs, skipping any that do not yield an item."""
    items = []
    for source, text in entries:
        item = score_text(source, text)
        if item is not None:
            items.append(item)
    return items


class SentimentAgent(ProducerAgent):
    kind = AgentKind.SENTIMENT
    item_model = SentimentItem
    payload_key = "sentiments"

    @property
    def real_signal_available(self) -> bool:
        return self.search.configured or self.social.configured

    async def fetch_real_signal(self, request: AgentRequest) -> list[SentimentItem]:
        items: list[SentimentItem] = []

        if self.social.configured:
            try:
                posts = await self.social.recent_posts(request.query_text, limit=MAX_REAL_ITEMS)
                items.extend(score_all((post.source, post.text) for post in posts))
            except Exception as e:
                logger.warning(f"Social fetch failed for '{request.query_text}': {e}")

        if self.search.configured and len(items) < MAX_REAL_ITEMS:
            try:
                hits = await self.search.search(f"{request.query_text} review", num=MAX_REAL_ITEMS)
                items.extend(score_all((source_from_host(hit.source), hit.snippet) for hit in hits))
            except Exception as e:
                logger.warning(f"Review search failed for '{request.query_text}': {e}")

        return items[:MAX_REAL_ITEMS]

    def build_prompt(self, request: AgentRequest) -> PromptRequest:
        return sentiment_prompt(request.query_text, request.query_type)

    def placeholder_records(self, request: AgentRequest) -> list[SentimentItem]:
        subject = request.query_text
        return [
            SentimentItem(
                source="Twitter/X",
                sentiment="positive",
                confidence=0.78,
                content=f"Great experience with {subject}! Highly recommend.",
                topics=["quality", "experience"],
            ),
            SentimentItem(
                source="Reddit",
                sentiment="neutral",
                confidence=0.65,
                content=f"Mixed feelings about {subject}. Some good points, some concerns.",
                topics=["value", "features"],
            ),
            SentimentItem(
                source="Product Reviews",
                sentiment="positive",
                confidence=0.82,
                content=f"{subject} exceeded my expectations. Well worth it.",
                topics=["satisfaction", "value"],
            ),
        ]

    def to_row(self, request: AgentRequest, item: SentimentItem, provenance: Provenance) -> SentimentRecord:
        return SentimentRecord(
            query_id=request.query_id,
            source=item.source,
            sentiment=item.sentiment,
            confidence=item.confidence,
            content=item.content,
            topics=item.topics,
            provenance=provenance,
        )
