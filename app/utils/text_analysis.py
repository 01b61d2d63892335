"""
Lightweight text heuristics used when real signal comes back as free text.

Keyword-scored sentiment, topic tagging, and regex extraction of prices,
ratings and product features from search snippets.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

POSITIVE_WORDS = {
    "amazing", "awesome", "best", "excellent", "fantastic", "fast", "good", "great",
    "happy", "impressive", "incredible", "love", "loved", "loving", "nice", "perfect",
    "recommend", "recommended", "reliable", "smooth", "solid", "stunning", "superb",
    "worth", "wow", "beautiful", "brilliant", "favorite", "premium", "satisfied",
}

NEGATIVE_WORDS = {
    "awful", "bad", "broken", "bug", "buggy", "cheap", "complaint", "crash", "crashes",
    "disappointed", "disappointing", "expensive", "fail", "failed", "hate", "issue",
    "issues", "lag", "laggy", "overpriced", "poor", "problem", "problems", "refund",
    "slow", "terrible", "useless", "waste", "worst", "defective", "scam", "annoying",
}

NEGATIONS = {"not", "no", "never", "isn't", "wasn't", "don't", "doesn't", "didn't", "hardly"}

TOPIC_KEYWORDS: dict[str, set[str]] = {
    "price": {"price", "pricing", "cost", "expensive", "cheap", "overpriced", "deal", "discount", "$"},
    "value": {"value", "worth", "money", "affordable"},
    "battery": {"battery", "charging", "charge", "charger"},
    "camera": {"camera", "photo", "photos", "video", "lens"},
    "design": {"design", "look", "looks", "build", "glyph", "color", "style"},
    "performance": {"performance", "fast", "slow", "lag", "speed", "smooth", "processor", "chip"},
    "software": {"software", "update", "updates", "app", "apps", "os", "ui", "bug", "bugs"},
    "support": {"support", "service", "warranty", "refund", "customer"},
    "quality": {"quality", "durable", "reliable", "defective", "broken"},
    "delivery": {"delivery", "shipping", "shipped", "stock"},
}

FEATURE_KEYWORDS = [
    "5G", "AMOLED", "OLED", "wireless charging", "fast charging", "water resistant",
    "dual camera", "triple camera", "120Hz", "stylus", "face unlock", "fingerprint",
    "noise cancelling", "free shipping", "24/7 support", "API access", "cloud storage",
    "analytics", "integrations", "free trial", "mobile app", "autopilot", "long range",
    "warranty", "lightweight", "touchscreen", "backlit keyboard",
]

_WORD_RE = re.compile(r"[a-z0-9$']+")
_PRICE_RE = re.compile(r"(?:US)?\$\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?")
_RATING_RES = [
    re.compile(r"(\d(?:\.\d{1,2})?)\s*/\s*5(?!\d)"),
    re.compile(r"(\d(?:\.\d{1,2})?)\s+out\s+of\s+5", re.IGNORECASE),
    re.compile(r"[Rr]ating:?\s*(\d(?:\.\d{1,2})?)"),
    re.compile(r"(\d(?:\.\d{1,2})?)\s*(?:stars?|★)", re.IGNORECASE),
]
_TAG_RE = re.compile(r"<[^>]+>")


def tokenize(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def strip_html(text: str) -> str:
    """Remove tags and collapse whitespace."""
    return re.sub(r"\s+", " ", _TAG_RE.sub(" ", text or "")).strip()


def classify_sentiment(text: str) -> tuple[str, float]:
    """
    Score text against the positive/negative lexicons.

    A negation directly before a lexicon word flips its polarity.

    Returns:
        (label, confidence) where label is positive|negative|neutral and
        confidence is in [0.5, 0.95]
    """
    tokens = tokenize(text)
    score = 0
    hits = 0
    for i, token in enumerate(tokens):
        polarity = 0
        if token in POSITIVE_WORDS:
            polarity = 1
        elif token in NEGATIVE_WORDS:
            polarity = -1
        if polarity == 0:
            continue
        if i > 0 and tokens[i - 1] in NEGATIONS:
            polarity = -polarity
        score += polarity
        hits += 1

    if score == 0:
        return "neutral", 0.5

    label = "positive" if score > 0 else "negative"
    # Margin relative to all lexicon hits; mixed texts stay near 0.5
    margin = abs(score) / hits
    confidence = min(0.95, round(0.5 + 0.1 * abs(score) * margin, 2))
    return label, max(confidence, 0.55)


def extract_topics(text: str, limit: int = 3) -> list[str]:
    """Topic tags whose keywords appear in the text, most hits first."""
    tokens = tokenize(text)
    counts: dict[str, int] = {}
    for topic, words in TOPIC_KEYWORDS.items():
        hits = sum(1 for t in tokens if t in words)
        if hits:
            counts[topic] = hits
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [topic for topic, _ in ranked[:limit]]


def extract_price(text: str) -> Optional[Decimal]:
    """First dollar amount in the text, e.g. "$1,099.99" -> Decimal("1099.99")."""
    match = _PRICE_RE.search(text or "")
    if not match:
        return None
    whole = match.group(1).replace(",", "")
    cents = match.group(2) or ""
    try:
        price = Decimal(whole + cents)
    except InvalidOperation:
        return None
    return price if price > 0 else None


def extract_rating(text: str) -> Optional[float]:
    """First 0-5 rating in the text ("4.5/5", "4 out of 5", "4.2 stars")."""
    for pattern in _RATING_RES:
        match = pattern.search(text or "")
        if match:
            value = float(match.group(1))
            if 0 <= value <= 5:
                return value
    return None


def extract_features(text: str, limit: int = 5) -> list[str]:
    """Known feature phrases mentioned in the text, in lexicon order."""
    lowered = (text or "").lower()
    found = [feature for feature in FEATURE_KEYWORDS if feature.lower() in lowered]
    return found[:limit]
