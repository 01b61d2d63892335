from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.db.models import Provenance, QueryStatus, QueryType, SentimentLabel, TrendDirection


CAMEL_CONFIG = ConfigDict(populate_by_name=True, serialize_by_alias=True)


# ============== Generated agent payloads ==============
# Items produced by the generative tier are validated here; invalid items are dropped.

class SentimentItem(BaseModel):
    source: str = Field(min_length=1, max_length=100)
    sentiment: SentimentLabel
    confidence: float = Field(ge=0.0, le=1.0)
    content: str = Field(min_length=1)
    topics: list[str] = []

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_label(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("confidence", mode="before")
    @classmethod
    def percent_to_fraction(cls, v):
        # Models sometimes answer 85 instead of 0.85
        if isinstance(v, (int, float)) and 1 < v <= 100:
            return v / 100
        return v


class CompetitorItem(BaseModel):
    competitor_name: str = Field(min_length=1, max_length=255, validation_alias=AliasChoices("name", "competitor_name"))
    price: Optional[Decimal] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0.0, le=5.0)
    url: Optional[str] = None
    features: list[str] = []

    @field_validator("price", mode="before")
    @classmethod
    def round_price(cls, v):
        if isinstance(v, float):
            return round(v, 2)
        if isinstance(v, str):
            cleaned = v.replace("$", "").replace(",", "").strip()
            return cleaned or None
        return v


class TrendPoint(BaseModel):
    date: str
    volume: Optional[int] = Field(None, ge=0)
    interest: Optional[int] = Field(None, ge=0, le=100)


class TrendItem(BaseModel):
    keyword: str = Field(min_length=1, max_length=255)
    search_volume: Optional[int] = Field(None, ge=0, alias="searchVolume")
    trend_direction: TrendDirection = Field(TrendDirection.stable, alias="trendDirection")
    time_period: str = Field("30d", alias="timePeriod", max_length=20)
    data_points: list[TrendPoint] = Field(default_factory=list, alias="dataPoints")

    model_config = CAMEL_CONFIG

    @field_validator("trend_direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class InsightItem(BaseModel):
    category: str = "general"  # pricing|sentiment|competitive|trending|opportunity|threat
    title: str
    description: str = ""
    priority: str = "medium"
    impact: str = ""


class RecommendationItem(BaseModel):
    action: str
    rationale: str = ""
    timeline: str = "short-term"  # immediate|short-term|long-term
    priority: str = "medium"


class ReportPayload(BaseModel):
    summary: str = ""
    insights: list[InsightItem] = []
    recommendations: list[RecommendationItem] = []


# ============== Queries ==============

class QueryCreate(BaseModel):
    query_text: str = Field(
        min_length=1,
        max_length=500,
        validation_alias=AliasChoices("query_text", "subject_text", "queryText"),
    )
    query_type: QueryType = Field(
        QueryType.product,
        validation_alias=AliasChoices("query_type", "subject_type", "queryType"),
    )
    owner_id: str = Field(min_length=1, validation_alias=AliasChoices("owner_id", "ownerId", "userId"))
    run: bool = True

    @field_validator("query_text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query text must not be blank")
        return v


class QueryOut(BaseModel):
    id: str
    query_text: str
    query_type: QueryType
    status: QueryStatus
    owner_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SentimentOut(BaseModel):
    id: str
    source: str
    sentiment: SentimentLabel
    confidence: float
    content: str
    topics: list[str] = []
    provenance: Provenance
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CompetitorOut(BaseModel):
    id: str
    competitor_name: str
    price: Optional[float] = None
    rating: Optional[float] = None
    url: Optional[str] = None
    features: list[str] = []
    provenance: Provenance
    last_updated: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TrendOut(BaseModel):
    id: str
    keyword: str
    search_volume: Optional[int] = None
    trend_direction: TrendDirection
    time_period: str
    data_points: list[dict] = []
    provenance: Provenance
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReportOut(BaseModel):
    id: str
    query_id: str
    title: str
    summary: Optional[str] = None
    insights: list[dict] = []
    recommendations: list[dict] = []
    document_url: Optional[str] = None
    provenance: Provenance
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QueryResults(BaseModel):
    query: QueryOut
    sentiments: list[SentimentOut] = []
    competitors: list[CompetitorOut] = []
    trends: list[TrendOut] = []
    report: Optional[ReportOut] = None


class OrchestrationResponse(BaseModel):
    success: bool
    failed_agents: int = Field(alias="failedAgents")
    total_agents: int = Field(alias="totalAgents")
    skipped: bool = False

    model_config = CAMEL_CONFIG


# ============== Agents ==============

class AgentRunRequest(BaseModel):
    query_id: str = Field(alias="queryId")
    query_text: str = Field(alias="queryText", min_length=1)
    query_type: QueryType = Field(QueryType.product, alias="queryType")

    model_config = CAMEL_CONFIG


class AgentRunResponse(BaseModel):
    success: bool
    count: int
    provenance: Optional[Provenance] = None


class InsightRunResponse(BaseModel):
    success: bool
    insights: int
    recommendations: int


# ============== Knowledge ==============

class KnowledgeProcessResponse(BaseModel):
    success: bool
    chunks: int
    embedded: int


class KnowledgeSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    query_id: Optional[str] = Field(None, alias="queryId")
    limit: int = Field(5, ge=1, le=50)
    threshold: float = Field(0.7, ge=0.0, le=1.0)

    model_config = CAMEL_CONFIG


class KnowledgeMatch(BaseModel):
    id: str
    query_id: str = Field(alias="queryId")
    content: str
    similarity: float
    metadata: dict = {}

    model_config = CAMEL_CONFIG


class KnowledgeSearchResponse(BaseModel):
    results: list[KnowledgeMatch] = []
    method: str  # "vector" or "keyword"


# ============== Reports ==============

class RenderResponse(BaseModel):
    success: bool
    document_url: Optional[str] = Field(None, alias="documentUrl")
    html_url: Optional[str] = Field(None, alias="htmlUrl")
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")

    model_config = CAMEL_CONFIG


# ============== Assistant ==============

class AssistantChatRequest(BaseModel):
    # Optional here so missing fields surface as 400 from the router
    message: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")
    query_id: Optional[str] = Field(None, alias="queryId")

    model_config = CAMEL_CONFIG


class AssistantChatResponse(BaseModel):
    response: str
    action: Optional[str] = None


# ============== Scenarios ==============

class PriceScenarioRequest(BaseModel):
    proposed_price: float = Field(gt=0, alias="proposedPrice")
    baseline_price: Optional[float] = Field(None, gt=0, alias="baselinePrice")

    model_config = CAMEL_CONFIG


class PriceScenarioResponse(BaseModel):
    proposed_price: float = Field(alias="proposedPrice")
    baseline_price: float = Field(alias="baselinePrice")
    price_change_pct: float = Field(alias="priceChangePct")
    baseline_sentiment: float = Field(alias="baselineSentiment")
    expected_sentiment: float = Field(alias="expectedSentiment")
    competitor_response: str = Field(alias="competitorResponse")

    model_config = CAMEL_CONFIG
