"""
Competitor Agent

Finds alternative products or companies and records price, rating and
feature data for each.
"""

import logging
import re
from decimal import Decimal, ROUND_HALF_UP

from app.agents.base import AgentKind, AgentRequest, ProducerAgent
from app.agents.catalog import CATEGORY_COMPETITORS, detect_category, is_same_brand
from app.agents.prompts import PromptRequest, competitor_prompt
from app.db.models import CompetitorRecord, Provenance
from app.models.schemas import CompetitorItem
from app.utils.text_analysis import extract_features, extract_price, extract_rating, strip_html

logger = logging.getLogger(__name__)

MAX_REAL_ITEMS = 6
CENTS = Decimal("0.01")

_TITLE_SPLIT_RE = re.compile(r"\s+[-|–:]\s+|\s*\|\s*")
_LISTICLE_RE = re.compile(r"\b(best|top \d+|alternatives?|vs\.?|versus|review|compared?)\b", re.IGNORECASE)


def competitor_name_from_title(title: str) -> str:
    """Leading segment of a result title, e.g. "Pixel 8 - Google Store" -> "Pixel 8"."""
    head = _TITLE_SPLIT_RE.split(strip_html(title), maxsplit=1)[0]
    return head.strip()[:255]


class CompetitorAgent(ProducerAgent):
    kind = AgentKind.COMPETITOR
    item_model = CompetitorItem
    payload_key = "competitors"

    async def fetch_real_signal(self, request: AgentRequest) -> list[CompetitorItem]:
        subject = request.query_text
        hits = await self.search.search(f"{subject} competitors alternatives price", num=10)

        items: list[CompetitorItem] = []
        seen: set[str] = set()
        for hit in hits:
            name = competitor_name_from_title(hit.title)
            if not name or _LISTICLE_RE.search(name):
                continue
            if subject.lower() in name.lower() or is_same_brand(subject, name):
                continue
            key = name.lower()
            if key in seen:
                continue
            seen.add(key)

            text = f"{hit.title} {hit.snippet}"
            items.append(CompetitorItem(
                name=name,
                price=extract_price(text),
                rating=extract_rating(text),
                url=hit.url or None,
                features=extract_features(text),
            ))
            if len(items) >= MAX_REAL_ITEMS:
                break

        return items

    def build_prompt(self, request: AgentRequest) -> PromptRequest:
        return competitor_prompt(request.query_text, request.query_type)

    def placeholder_records(self, request: AgentRequest) -> list[CompetitorItem]:
        subject = request.query_text
        category = detect_category(subject)

        if category:
            items = [
                CompetitorItem(name=name, price=price, rating=rating, url=url, features=features)
                for name, price, rating, url, features in CATEGORY_COMPETITORS[category]
                if not is_same_brand(subject, name)
            ]
            if items:
                return items

        return [
            CompetitorItem(
                name=f"{subject} Alternative A",
                price=89.99,
                rating=4.1,
                url="https://competitor-a.com",
                features=["Advanced Analytics", "Cloud Storage", "24/7 Support"],
            ),
            CompetitorItem(
                name=f"{subject} Pro",
                price=129.99,
                rating=4.4,
                url="https://competitor-b.com",
                features=["Premium Features", "API Access", "Custom Reports"],
            ),
            CompetitorItem(
                name=f"Budget {subject}",
                price=49.99,
                rating=3.8,
                url="https://budget-option.com",
                features=["Basic Features", "Email Support", "Standard Analytics"],
            ),
        ]

    def to_row(self, request: AgentRequest, item: CompetitorItem, provenance: Provenance) -> CompetitorRecord:
        price = item.price.quantize(CENTS, rounding=ROUND_HALF_UP) if item.price is not None else None
        return CompetitorRecord(
            query_id=request.query_id,
            competitor_name=item.competitor_name,
            price=price,
            rating=item.rating,
            url=item.url,
            features=item.features,
            provenance=provenance,
        )
