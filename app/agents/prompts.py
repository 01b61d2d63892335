"""
Prompt templates for every generative call in the pipeline.

Each builder returns a PromptRequest so the agents never assemble provider
messages themselves.
"""

import json
from dataclasses import dataclass
from typing import Optional

from app.services.llm_service import ChatMessage, TaskType


@dataclass
class PromptRequest:
    """Everything needed for one generative call."""
    system: str
    user: str
    temperature: float = 0.7
    max_tokens: int = 1500
    json_mode: bool = True
    task_type: TaskType = TaskType.EXTRACTION

    def to_messages(self, history: Optional[list[ChatMessage]] = None) -> list[ChatMessage]:
        messages = [ChatMessage(role="system", content=self.system)]
        if history:
            messages.extend(history)
        messages.append(ChatMessage(role="user", content=self.user))
        return messages


def _subject_kind(query_type: str) -> str:
    value = getattr(query_type, "value", query_type)
    return "product" if value == "product" else "company"


# =============================================================================
# Producer agents
# =============================================================================

def sentiment_prompt(query_text: str, query_type: str) -> PromptRequest:
    return PromptRequest(
        system="You are a sentiment analysis expert. Provide realistic market sentiment data.",
        user=f"""
Analyze the sentiment around "{query_text}" ({_subject_kind(query_type)}).
Provide realistic sentiment analysis data as if gathered from social media, reviews, and news.
Return a JSON object with:
{{
  "sentiments": [
    {{
      "source": "source_name",
      "sentiment": "positive|negative|neutral",
      "confidence": 0.85,
      "content": "sample content or review",
      "topics": ["topic1", "topic2"]
    }}
  ]
}}

Generate 5-8 realistic sentiment entries from different sources
(Twitter/X, Reddit, Product Reviews, News Articles, Forums).
""".strip(),
    )


def competitor_prompt(query_text: str, query_type: str) -> PromptRequest:
    return PromptRequest(
        system="You are a competitive intelligence expert. Provide realistic competitor data.",
        user=f"""
Analyze competitors for "{query_text}" ({_subject_kind(query_type)}).
Provide realistic competitor analysis data as if gathered from market research.
Use real brand and product names. Do not list "{query_text}" itself.
Return a JSON object with:
{{
  "competitors": [
    {{
      "name": "Competitor Name",
      "price": 99.99,
      "rating": 4.2,
      "url": "https://example.com/product",
      "features": ["feature1", "feature2", "feature3"]
    }}
  ]
}}

Generate 4-6 realistic competitor entries with appropriate pricing (USD) and features.
""".strip(),
    )


def trend_prompt(query_text: str, query_type: str) -> PromptRequest:
    return PromptRequest(
        system="You are a market trend analyst. Provide realistic trend data with proper JSON format.",
        user=f"""
Analyze market trends for "{query_text}" ({_subject_kind(query_type)}).
Base the analysis on actual market trends, seasonal patterns, and industry growth in this space.

Consider factors like:
- Actual market size for this industry
- Seasonal variations (if applicable)
- Recent industry developments
- Competition levels

Return a JSON object with realistic data:
{{
  "trends": [
    {{
      "keyword": "main keyword or related term",
      "searchVolume": 12500,
      "trendDirection": "increasing|decreasing|stable",
      "timePeriod": "30d|90d|1y",
      "dataPoints": [
        {{"date": "2024-01-01", "volume": 10000, "interest": 85}},
        {{"date": "2024-01-15", "volume": 12500, "interest": 92}}
      ]
    }}
  ]
}}

Base search volumes on realistic numbers for the {query_text} industry.
Generate 4-6 trend entries covering different aspects and time periods.
""".strip(),
    )


# =============================================================================
# Insight aggregation
# =============================================================================

INSIGHT_SYSTEM = (
    "You are a senior business strategist who converts market research data into specific, "
    "actionable business recommendations. Focus on concrete actions that drive measurable "
    "business outcomes."
)


def _format_sentiments(rows) -> str:
    if not rows:
        return "No sentiment data available"
    lines = []
    for s in rows:
        topics = ", ".join(s.topics or []) or "N/A"
        label = getattr(s.sentiment, "value", s.sentiment)
        lines.append(
            f'- {s.source}: {label} ({round(s.confidence * 100)}% confidence) - Topics: {topics} '
            f'- Content: "{s.content[:100]}..."'
        )
    return "\n".join(lines)


def _format_competitors(rows) -> str:
    if not rows:
        return "No competitor data available"
    return "\n".join(
        f"- {c.competitor_name}: ${c.price if c.price is not None else 'N/A'} "
        f"({c.rating if c.rating is not None else 'N/A'}★) - URL: {c.url or 'N/A'} "
        f"- Key Features: {json.dumps(c.features or [])}"
        for c in rows
    )


def _format_trends(rows) -> str:
    if not rows:
        return "No trend data available"
    return "\n".join(
        f"- {t.keyword}: {t.search_volume if t.search_volume is not None else 'N/A'} searches "
        f"({getattr(t.trend_direction, 'value', t.trend_direction)} trend) over {t.time_period} "
        f"- Data: {json.dumps(t.data_points or [])}"
        for t in rows
    )


def insight_prompt(query_text: str, query_type: str, sentiments, competitors, trends) -> PromptRequest:
    user = f"""
You are an expert market research analyst specializing in actionable business intelligence. Based on the following data, provide strategic insights and concrete, action-oriented recommendations.

Query: {query_text}
Type: {_subject_kind(query_type)}

## Market Intelligence Data:

### Sentiment Analysis:
{_format_sentiments(sentiments)}

### Competitor Intelligence:
{_format_competitors(competitors)}

### Market Trends:
{_format_trends(trends)}

## Requirements:
Generate ACTION-ORIENTED recommendations that include specific business actions, not just insights.

Examples of good recommendations:
- "Competitor reduced Product X price by 20% -> Launch bundle discounts within 48 hours"
- "Negative sentiment spike detected -> Implement customer feedback response campaign immediately"
- "Rising search trend for feature Y -> Update product marketing to highlight this feature in next campaign"

Provide:
1. Executive Summary (2-3 sentences focusing on immediate opportunities/threats)
2. Strategic Insights (3-5 key findings with business impact)
3. Action-Oriented Recommendations (3-5 specific actions with clear business rationale)

Format as JSON:
{{
  "summary": "Executive summary highlighting key market opportunities and immediate action items",
  "insights": [
    {{
      "category": "pricing|sentiment|competitive|trending|opportunity|threat",
      "title": "Clear, business-focused insight title",
      "description": "Detailed analysis with specific metrics and business implications",
      "priority": "high|medium|low",
      "impact": "Quantifiable business impact (revenue, market share, customer satisfaction)"
    }}
  ],
  "recommendations": [
    {{
      "action": "Specific, actionable business step",
      "rationale": "Clear business reasoning with data support",
      "timeline": "immediate|short-term|long-term",
      "priority": "high|medium|low"
    }}
  ]
}}
""".strip()
    return PromptRequest(
        system=INSIGHT_SYSTEM,
        user=user,
        max_tokens=2000,
        task_type=TaskType.ANALYSIS,
    )


# =============================================================================
# Assistant
# =============================================================================

ASSISTANT_SYSTEM = """You are a market research AI assistant with access to real-time market data. Provide helpful, actionable insights about market research, competitor analysis, sentiment trends, and business intelligence.

Current Market Data Context:
{context}

Guidelines:
- Be conversational and helpful
- Reference the data above when it answers the question
- Provide specific, actionable recommendations
- Keep responses concise but informative
- When data is missing, say so and suggest running a new research query"""


def assistant_prompt(message: str, context: str) -> PromptRequest:
    return PromptRequest(
        system=ASSISTANT_SYSTEM.format(context=context or "No research data available yet."),
        user=message,
        temperature=0.7,
        max_tokens=500,
        json_mode=False,
        task_type=TaskType.CHAT,
    )
