"""
Data models and schemas for the Crisis Sentiment Intelligence service
Covers dashboard metrics, agent swarm state, crisis pipeline results and external signal records
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, List, Optional, Literal
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums for constrained fields
class Industry(str, Enum):
    TECHNOLOGY = "technology"
    FINANCIAL = "financial"
    HEALTHCARE = "healthcare"
    ENERGY = "energy"
    RETAIL = "retail"
    AUTOMOTIVE = "automotive"


class MarketPosition(str, Enum):
    DOMINANT = "dominant"
    GROWTH = "growth"
    ESTABLISHED = "established"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CrisisEventType(str, Enum):
    ANNOUNCEMENT = "announcement"
    CRISIS = "crisis"
    RESPONSE = "response"
    EXTERNAL = "external"


class ThreatOpportunityType(str, Enum):
    THREAT = "threat"
    OPPORTUNITY = "opportunity"


class AgentType(str, Enum):
    SENTIMENT = "sentiment"
    PLATFORM = "platform"
    GEOGRAPHIC = "geographic"
    COMPETITOR = "competitor"
    STAKEHOLDER = "stakeholder"
    CRISIS = "crisis"
    THREAT = "threat"


class AgentStatus(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class SwarmStatus(str, Enum):
    INITIALIZING = "initializing"
    COLLECTING = "collecting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Period(str, Enum):
    LAST_24_HOURS = "24h"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_YEAR = "1y"
    ALL_TIME = "all"


class DataSourceKind(str, Enum):
    COLLECTED = "collected"
    SYNTHETIC = "synthetic"


TERMINAL_AGENT_STATUSES = (AgentStatus.COMPLETED, AgentStatus.ERROR)

# Dashboard Metrics
# Ranges are checked by tools.metrics_validator, not at construction time.


class SentimentDataPoint(BaseModel):
    model_config = ConfigDict(extra='forbid')

    timestamp: datetime
    sentiment: int
    volume: int
    platform: str = "aggregate"
    confidence: float


class KPIMetrics(BaseModel):
    model_config = ConfigDict(extra='forbid')

    overall_sentiment: int
    recovery_velocity: int
    stakeholder_confidence: int
    competitive_advantage: int
    media_momentum: int


class PlatformMetrics(BaseModel):
    model_config = ConfigDict(extra='forbid')

    platform: str
    sentiment: int
    volume: int
    engagement: float
    reach: int
    confidence: float


class StakeholderSegment(BaseModel):
    model_config = ConfigDict(extra='forbid')

    segment: str
    sentiment: int
    volume: int
    trend: int
    priority: str  # one of Priority; kept as str so bad values reach the validator


class GeographicData(BaseModel):
    model_config = ConfigDict(extra='forbid')

    region: str
    sentiment: int
    volume: int
    risk: int
    lat: float = 0.0
    lng: float = 0.0


class CompetitorData(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: str
    sentiment: int
    market_share: int
    trend: int
    advantage: int


class CrisisEvent(BaseModel):
    model_config = ConfigDict(extra='forbid')

    date: datetime
    title: str
    type: CrisisEventType
    impact: int
    description: str


class ThreatOpportunity(BaseModel):
    model_config = ConfigDict(extra='forbid')

    id: str
    type: str  # "threat" or "opportunity"
    title: str
    description: str
    priority: str
    probability: float
    impact: int
    time_window: str
    verified_url: Optional[str] = None
    source: Optional[str] = None
    published_at: Optional[datetime] = None
    validation_score: Optional[int] = None
    business_relevance: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    model_config = ConfigDict(extra='forbid')

    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class CompanyMetrics(BaseModel):
    model_config = ConfigDict(extra='forbid')

    sentiment_data: List[SentimentDataPoint] = Field(default_factory=list)
    hourly_data: List[SentimentDataPoint] = Field(default_factory=list)
    kpi_metrics: KPIMetrics
    platform_metrics: List[PlatformMetrics] = Field(default_factory=list)
    stakeholder_segments: List[StakeholderSegment] = Field(default_factory=list)
    geographic_data: List[GeographicData] = Field(default_factory=list)
    competitor_data: List[CompetitorData] = Field(default_factory=list)
    crisis_events: List[CrisisEvent] = Field(default_factory=list)
    threats_opportunities: List[ThreatOpportunity] = Field(default_factory=list)
    validation: ValidationResult = Field(default_factory=ValidationResult)

# Company Models


class CompanyContext(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    industry: Industry
    base_risk: float = Field(ge=0.0, le=1.0)
    market_position: MarketPosition


class CompanyProfile(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    name: str
    industry: str  # display name, e.g. "Financial Services"
    sector: str
    business_model: str
    primary_services: List[str] = Field(default_factory=list)
    target_markets: List[str] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)
    regulatory_bodies: List[str] = Field(default_factory=list)
    key_risks: List[str] = Field(default_factory=list)
    business_keywords: List[str] = Field(default_factory=list)


class RelevanceAssessment(BaseModel):
    model_config = ConfigDict(extra='forbid')

    is_valid: bool
    relevance_score: int
    reasons: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

# External Signal Records
# Each source returns typed records tagged with `kind`, carrying confidence and verified flags.


class NewsArticleRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["news"] = "news"
    title: str
    description: str = ""
    url: str = ""
    published_at: datetime
    source: str = "News Source"
    # false when the feed entry carried no date; published_at is then the parse time
    dated: bool = True
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    verified: bool = False


class ForumPostRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["forum"] = "forum"
    id: str
    title: str = ""
    text: str = ""
    score: int = 0
    num_comments: int = 0
    created_at: datetime
    community: str = ""
    url: str = ""
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    verified: bool = False


class Engagement(BaseModel):
    model_config = ConfigDict(extra='forbid')

    likes: int = 0
    comments: int = 0
    shares: int = 0


class ProfessionalPostRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["professional"] = "professional"
    id: str
    text: str
    author_name: str = ""
    author_title: str = ""
    engagement: Engagement = Field(default_factory=Engagement)
    published_at: datetime
    url: str = ""
    sentiment: int = 0
    relevance_score: float = Field(default=1.0, ge=0.0, le=1.0)
    weight_multiplier: float = 1.0  # company updates 1.5, executive mentions use influence score
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    verified: bool = False


class StockQuoteRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["quote"] = "quote"
    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    market_cap: int
    timestamp: datetime
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    verified: bool = False


class CompetitorMentionRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["competitor"] = "competitor"
    company: str
    mentions: int
    sentiment: int
    source: str = "Google News"
    timestamp: datetime = Field(default_factory=_utcnow)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    verified: bool = False


class Coordinates(BaseModel):
    model_config = ConfigDict(extra='forbid')

    lat: float = 0.0
    lng: float = 0.0


class GeographicMentionRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["geographic"] = "geographic"
    region: str
    country: str
    mentions: int
    sentiment: int
    coordinates: Coordinates = Field(default_factory=Coordinates)
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    verified: bool = False


class VerifiedNewsArticle(BaseModel):
    model_config = ConfigDict(extra='forbid')

    kind: Literal["verified_news"] = "verified_news"
    id: str
    title: str
    description: str
    url: str
    published_at: datetime
    source_name: str
    source_url: str
    category: ThreatOpportunityType
    priority: Priority
    impact: int
    probability: float = Field(ge=0.0, le=1.0)
    company_relevance: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    verified: bool = True

# Crisis Pipeline Models


class CandidateCrisisEvent(BaseModel):
    """A crisis-like news hit before relevance scoring"""
    model_config = ConfigDict(extra='forbid')

    title: str
    description: str = ""
    url: str = ""
    date: datetime
    source: str = "News Source"


class ValidatedCrisisEvent(CrisisEvent):
    id: str
    verified: bool
    sources: List[str] = Field(default_factory=list)
    verification_score: int
    company_relevance: int
    actual_event: bool
    news_url: Optional[str] = None


class RejectedCrisisEvent(BaseModel):
    model_config = ConfigDict(extra='forbid')

    event: CandidateCrisisEvent
    reason: str
    score: int


class CrisisValidationSummary(BaseModel):
    model_config = ConfigDict(extra='forbid')

    total_events: int = 0
    verified_events: int = 0
    rejection_rate: float = 0.0
    average_relevance: float = 0.0


class CrisisValidationResult(BaseModel):
    model_config = ConfigDict(extra='forbid')

    is_valid: bool = False
    verified_events: List[ValidatedCrisisEvent] = Field(default_factory=list)
    rejected_events: List[RejectedCrisisEvent] = Field(default_factory=list)
    validation_summary: CrisisValidationSummary = Field(default_factory=CrisisValidationSummary)


class VerificationSource(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: str
    url: str
    reliability: float = Field(ge=0.0, le=1.0)
    verified: bool


class EventVerification(BaseModel):
    model_config = ConfigDict(extra='forbid')

    event: ValidatedCrisisEvent
    is_verified: bool
    confidence: float
    sources: List[VerificationSource] = Field(default_factory=list)


class VerificationSummary(BaseModel):
    model_config = ConfigDict(extra='forbid')

    total_sources: int = 0
    verified_sources: int = 0
    average_reliability: float = 0.0
    cross_verification_score: float = 0.0


class CrisisVerificationResult(BaseModel):
    model_config = ConfigDict(extra='forbid')

    is_verified: bool = False
    confidence: float = 0.0
    sources: List[VerificationSource] = Field(default_factory=list)
    verified_events: List[ValidatedCrisisEvent] = Field(default_factory=list)
    verification_summary: VerificationSummary = Field(default_factory=VerificationSummary)

# Agent Swarm Models


class DataAgent(BaseModel):
    model_config = ConfigDict(extra='forbid')

    id: str
    name: str
    type: AgentType
    status: AgentStatus = AgentStatus.IDLE
    progress: float = 0.0
    last_update: datetime = Field(default_factory=_utcnow)
    data_points: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_AGENT_STATUSES


class AgentSwarm(BaseModel):
    model_config = ConfigDict(extra='forbid')

    company_name: str
    start_date: datetime
    end_date: datetime
    agents: List[DataAgent] = Field(default_factory=list)
    overall_progress: float = 0.0
    status: SwarmStatus = SwarmStatus.INITIALIZING
    total_data_points: int = 0
    estimated_completion: datetime
    epoch: int = 0


class CollectedSignals(BaseModel):
    """Everything the collection agents gathered during one swarm epoch"""
    model_config = ConfigDict(extra='forbid')

    news_articles: List[NewsArticleRecord] = Field(default_factory=list)
    forum_posts: List[ForumPostRecord] = Field(default_factory=list)
    verified_news: List[VerifiedNewsArticle] = Field(default_factory=list)
    stock_quotes: List[StockQuoteRecord] = Field(default_factory=list)
    competitor_mentions: List[CompetitorMentionRecord] = Field(default_factory=list)
    geographic_mentions: List[GeographicMentionRecord] = Field(default_factory=list)
    stakeholder_articles: Dict[str, List[NewsArticleRecord]] = Field(default_factory=dict)
    professional_posts: List[ProfessionalPostRecord] = Field(default_factory=list)
    validated_items: List[ThreatOpportunity] = Field(default_factory=list)
    detected_items: List[ThreatOpportunity] = Field(default_factory=list)
    crisis_validation: Optional[CrisisValidationResult] = None
    crisis_verification: Optional[CrisisVerificationResult] = None


class SentimentDistribution(BaseModel):
    model_config = ConfigDict(extra='forbid')

    positive: int
    neutral: int
    negative: int


class CollectionMetrics(BaseModel):
    model_config = ConfigDict(extra='forbid')

    total_mentions: int
    sentiment_distribution: SentimentDistribution
    platform_breakdown: Dict[str, int] = Field(default_factory=dict)
    geographic_distribution: Dict[str, int] = Field(default_factory=dict)
    confidence_score: float
    data_quality: float


class CollectionOutcome(BaseModel):
    """What one swarm epoch produced; a superseded run produces none"""
    model_config = ConfigDict(extra='forbid')

    company_name: str
    epoch: int
    status: SwarmStatus
    signals: CollectedSignals
    metrics: Optional[CompanyMetrics] = None
    collection_metrics: Optional[CollectionMetrics] = None

# Date Range Models


class DateRange(BaseModel):
    model_config = ConfigDict(extra='forbid', frozen=True)

    period: Period
    start: datetime
    end: datetime
    format_string: str
    label: str
    total_days: int


class RangeMetrics(BaseModel):
    model_config = ConfigDict(extra='forbid')

    average_sentiment: int = 0
    total_volume: int = 0
    data_points: int = 0
    sentiment_trend: float = 0.0
    volume_trend: float = 0.0


class DataCollectionStatus(BaseModel):
    model_config = ConfigDict(extra='forbid')

    start_date: datetime
    end_date: datetime
    total_days: int
    is_complete: bool
    last_update: datetime
    data_points: int
    label: str

# Request/Response Models for API


class VerificationBadge(BaseModel):
    model_config = ConfigDict(extra='forbid')

    is_verified: bool = False
    confidence: float = 0.0
    verified_events: int = 0


class DashboardView(BaseModel):
    model_config = ConfigDict(extra='forbid')

    company_name: str
    period: Period
    date_range: DateRange
    range_metrics: RangeMetrics
    metrics: CompanyMetrics
    data_source: DataSourceKind
    verification: VerificationBadge = Field(default_factory=VerificationBadge)
    generated_at: datetime = Field(default_factory=_utcnow)


class MetricsRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    company_name: str
    period: Period = Period.LAST_30_DAYS
    collect: bool = True


class SwarmStartRequest(BaseModel):
    model_config = ConfigDict(extra='forbid')

    company_name: str


class ErrorView(BaseModel):
    model_config = ConfigDict(extra='forbid')

    message: str
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# Export all models for easy importing
__all__ = [
    'Industry', 'MarketPosition', 'Priority', 'CrisisEventType', 'ThreatOpportunityType',
    'AgentType', 'AgentStatus', 'SwarmStatus', 'Period', 'DataSourceKind',
    'TERMINAL_AGENT_STATUSES',
    'SentimentDataPoint', 'KPIMetrics', 'PlatformMetrics', 'StakeholderSegment',
    'GeographicData', 'CompetitorData', 'CrisisEvent', 'ThreatOpportunity',
    'ValidationResult', 'CompanyMetrics', 'CompanyContext', 'CompanyProfile',
    'RelevanceAssessment', 'NewsArticleRecord', 'ForumPostRecord', 'Engagement',
    'ProfessionalPostRecord', 'StockQuoteRecord', 'CompetitorMentionRecord',
    'Coordinates', 'GeographicMentionRecord', 'VerifiedNewsArticle',
    'CandidateCrisisEvent', 'ValidatedCrisisEvent', 'RejectedCrisisEvent',
    'CrisisValidationSummary', 'CrisisValidationResult', 'VerificationSource',
    'EventVerification', 'VerificationSummary', 'CrisisVerificationResult',
    'DataAgent', 'AgentSwarm', 'CollectedSignals', 'SentimentDistribution', 'CollectionMetrics',
    'CollectionOutcome',
    'DateRange', 'RangeMetrics', 'DataCollectionStatus', 'VerificationBadge',
    'DashboardView', 'MetricsRequest', 'SwarmStartRequest', 'ErrorView',
]
