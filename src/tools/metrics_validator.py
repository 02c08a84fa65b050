"""
Metrics validator
Range and completeness checks over CompanyMetrics; problems are reported as data
"""

import re
from typing import List, Sequence

from models.schemas import (
    CompanyMetrics, CompetitorData, GeographicData, KPIMetrics, PlatformMetrics,
    Priority, SentimentDataPoint, StakeholderSegment, ThreatOpportunity,
    ThreatOpportunityType, ValidationResult
)

COMPANY_NAME_MIN_LENGTH = 2
COMPANY_NAME_MAX_LENGTH = 100
INVALID_NAME_CHARACTERS = re.compile(r"[<>{}\[\]\\/]")
MIN_HISTORY_POINTS = 30

VALID_PRIORITIES = {p.value for p in Priority}
VALID_ITEM_TYPES = {t.value for t in ThreatOpportunityType}


class InvalidCompanyNameError(ValueError):
    """Raised when a company name fails validation"""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


def _result(errors: List[str], warnings: List[str]) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def _outside(value: float, low: float, high: float) -> bool:
    return value < low or value > high


def _blank(value) -> bool:
    return not value or not str(value).strip()


def validate_company_name(company_name: str) -> ValidationResult:
    errors: List[str] = []
    trimmed = (company_name or "").strip()

    if not trimmed:
        errors.append('Company name is required')
    if len(trimmed) < COMPANY_NAME_MIN_LENGTH:
        errors.append('Company name must be at least 2 characters')
    if len(trimmed) > COMPANY_NAME_MAX_LENGTH:
        errors.append('Company name must be less than 100 characters')
    if INVALID_NAME_CHARACTERS.search(company_name or ""):
        errors.append('Company name contains invalid characters')

    return _result(errors, [])


def require_valid_company_name(company_name: str) -> str:
    """Return the trimmed name or raise InvalidCompanyNameError"""
    result = validate_company_name(company_name)
    if not result.is_valid:
        raise InvalidCompanyNameError(result.errors)
    return company_name.strip()


def validate_kpi_metrics(kpis: KPIMetrics) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if _outside(kpis.overall_sentiment, -100, 100):
        errors.append('Overall sentiment must be between -100 and 100')
    if _outside(kpis.recovery_velocity, 0, 100):
        errors.append('Recovery velocity must be between 0 and 100')
    if _outside(kpis.stakeholder_confidence, 0, 100):
        errors.append('Stakeholder confidence must be between 0 and 100')
    if _outside(kpis.media_momentum, 0, 100):
        errors.append('Media momentum must be between 0 and 100')
    if _outside(kpis.competitive_advantage, -100, 100):
        errors.append('Competitive advantage must be between -100 and 100')

    if kpis.overall_sentiment < -80:
        warnings.append('Extremely negative sentiment detected')
    if kpis.recovery_velocity < 10:
        warnings.append('Very low recovery velocity')

    return _result(errors, warnings)


def validate_platform_metrics(platforms: Sequence[PlatformMetrics]) -> ValidationResult:
    if not platforms:
        return _result(['Platform metrics are required'], [])

    errors: List[str] = []
    for index, platform in enumerate(platforms):
        label = f"Platform {platform.platform}"
        if _blank(platform.platform):
            errors.append(f"Platform {index + 1}: Platform name is required")
        if _outside(platform.sentiment, -100, 100):
            errors.append(f"{label}: Sentiment must be between -100 and 100")
        if platform.volume < 0:
            errors.append(f"{label}: Volume cannot be negative")
        if _outside(platform.engagement, 0, 100):
            errors.append(f"{label}: Engagement must be between 0 and 100")
        if platform.reach < 0:
            errors.append(f"{label}: Reach cannot be negative")
        if _outside(platform.confidence, 0, 1):
            errors.append(f"{label}: Confidence must be between 0 and 1")

    return _result(errors, [])


def validate_stakeholder_segments(segments: Sequence[StakeholderSegment]) -> ValidationResult:
    if not segments:
        return _result(['Stakeholder segments are required'], [])

    errors: List[str] = []
    for index, segment in enumerate(segments):
        label = f"Segment {segment.segment}"
        if _blank(segment.segment):
            errors.append(f"Segment {index + 1}: Segment name is required")
        if _outside(segment.sentiment, -100, 100):
            errors.append(f"{label}: Sentiment must be between -100 and 100")
        if segment.volume < 0:
            errors.append(f"{label}: Volume cannot be negative")
        if _outside(segment.trend, -100, 100):
            errors.append(f"{label}: Trend must be between -100 and 100")
        if segment.priority not in VALID_PRIORITIES:
            errors.append(f"{label}: Invalid priority level")

    return _result(errors, [])


def validate_geographic_data(regions: Sequence[GeographicData]) -> ValidationResult:
    if not regions:
        return _result(['Geographic data is required'], [])

    errors: List[str] = []
    for index, region in enumerate(regions):
        label = f"Region {region.region}"
        if _blank(region.region):
            errors.append(f"Region {index + 1}: Region name is required")
        if _outside(region.sentiment, -100, 100):
            errors.append(f"{label}: Sentiment must be between -100 and 100")
        if region.volume < 0:
            errors.append(f"{label}: Volume cannot be negative")
        if _outside(region.risk, 0, 100):
            errors.append(f"{label}: Risk must be between 0 and 100")

    return _result(errors, [])


def validate_competitor_data(competitors: Sequence[CompetitorData]) -> ValidationResult:
    if not competitors:
        return _result(['Competitor data is required'], [])

    errors: List[str] = []
    for index, competitor in enumerate(competitors):
        label = f"Competitor {competitor.name}"
        if _blank(competitor.name):
            errors.append(f"Competitor {index + 1}: Name is required")
        if _outside(competitor.sentiment, -100, 100):
            errors.append(f"{label}: Sentiment must be between -100 and 100")
        if _outside(competitor.market_share, 0, 100):
            errors.append(f"{label}: Market share must be between 0 and 100")
        if _outside(competitor.trend, -100, 100):
            errors.append(f"{label}: Trend must be between -100 and 100")

    return _result(errors, [])


def validate_sentiment_data(points: Sequence[SentimentDataPoint]) -> ValidationResult:
    """Used for both the daily and the hourly series"""
    if not points:
        return _result(['Sentiment data is required'], [])

    errors: List[str] = []
    warnings: List[str] = []
    if len(points) < MIN_HISTORY_POINTS:
        warnings.append('Limited historical data available')

    for index, point in enumerate(points):
        label = f"Data point {index + 1}"
        if point.timestamp is None:
            errors.append(f"{label}: Timestamp is required")
        if _outside(point.sentiment, -100, 100):
            errors.append(f"{label}: Sentiment must be between -100 and 100")
        if point.volume < 0:
            errors.append(f"{label}: Volume cannot be negative")
        if _outside(point.confidence, 0, 1):
            errors.append(f"{label}: Confidence must be between 0 and 1")

    return _result(errors, warnings)


def validate_threats_opportunities(items: Sequence[ThreatOpportunity]) -> ValidationResult:
    if not items:
        return _result([], ['No threats or opportunities data available'])

    errors: List[str] = []
    for index, item in enumerate(items):
        label = f"Item {item.id}"
        if _blank(item.id):
            errors.append(f"Item {index + 1}: ID is required")
        if item.type not in VALID_ITEM_TYPES:
            errors.append(f"{label}: Invalid type")
        if _blank(item.title):
            errors.append(f"{label}: Title is required")
        if item.priority not in VALID_PRIORITIES:
            errors.append(f"{label}: Invalid priority level")
        if _outside(item.probability, 0, 1):
            errors.append(f"{label}: Probability must be between 0 and 1")
        if _outside(item.impact, -100, 100):
            errors.append(f"{label}: Impact must be between -100 and 100")

    return _result(errors, [])


def validate_company_metrics(metrics: CompanyMetrics) -> ValidationResult:
    """Concatenate every component check; valid iff no errors anywhere"""
    checks = [
        validate_kpi_metrics(metrics.kpi_metrics),
        validate_platform_metrics(metrics.platform_metrics),
        validate_stakeholder_segments(metrics.stakeholder_segments),
        validate_geographic_data(metrics.geographic_data),
        validate_competitor_data(metrics.competitor_data),
        validate_sentiment_data(metrics.sentiment_data),
        validate_sentiment_data(metrics.hourly_data),
        validate_threats_opportunities(metrics.threats_opportunities),
    ]

    errors = [error for check in checks for error in check.errors]
    warnings = [warning for check in checks for warning in check.warnings]
    return _result(errors, warnings)


__all__ = [
    'InvalidCompanyNameError', 'validate_company_name', 'require_valid_company_name',
    'validate_kpi_metrics', 'validate_platform_metrics', 'validate_stakeholder_segments',
    'validate_geographic_data', 'validate_competitor_data', 'validate_sentiment_data',
    'validate_threats_opportunities', 'validate_company_metrics',
]
