"""
Date-range filtering and range metric recomputation
Derives read-only dashboard projections from a CompanyMetrics snapshot
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple, Union
from datetime import datetime, timedelta, timezone

from models.schemas import (
    CompanyMetrics, CrisisEvent, DataCollectionStatus, DateRange, KPIMetrics,
    Period, RangeMetrics, SentimentDataPoint
)
from tools.company_context import clamp_percent, clamp_sentiment, round_half_up

# All daily series start here
DATA_START_DATE = datetime(2025, 1, 1, tzinfo=timezone.utc)

SECONDS_PER_DAY = 86400
ESTIMATED_POINTS_PER_DAY = 1000

# period -> (lookback, format string, label, total days); "all" is derived from DATA_START_DATE
PERIOD_SPECS: Dict[Period, Tuple[Optional[timedelta], str, str, Optional[int]]] = {
    Period.LAST_24_HOURS: (timedelta(hours=24), "HH:mm", "Last 24 Hours", 1),
    Period.LAST_7_DAYS: (timedelta(days=7), "MMM dd", "Last 7 Days", 7),
    Period.LAST_30_DAYS: (timedelta(days=30), "MMM dd", "Last 30 Days", 30),
    Period.LAST_YEAR: (timedelta(days=365), "MMM yyyy", "Last Year", 365),
    Period.ALL_TIME: (None, "MMM dd, yyyy", "All Time", None),
}

# Range-adjusted KPI weighting per period
CONFIDENCE_MULTIPLIER: Dict[Period, float] = {
    Period.LAST_24_HOURS: 1.2,
    Period.LAST_7_DAYS: 1.1,
    Period.LAST_30_DAYS: 1.0,
    Period.LAST_YEAR: 0.9,
    Period.ALL_TIME: 0.8,
}
MOMENTUM_MULTIPLIER: Dict[Period, float] = {
    Period.LAST_24_HOURS: 1.5,
    Period.LAST_7_DAYS: 1.3,
    Period.LAST_30_DAYS: 1.0,
    Period.LAST_YEAR: 0.8,
    Period.ALL_TIME: 0.7,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_date_range(period: Union[Period, str], now: Optional[datetime] = None) -> DateRange:
    """Resolve a period selector into a concrete [start, end] window ending now"""
    period = Period(period)
    end = _as_utc(now) if now else utc_now()
    lookback, format_string, label, total_days = PERIOD_SPECS[period]

    if lookback is None:
        start = DATA_START_DATE
        total_days = math.ceil((end - DATA_START_DATE).total_seconds() / SECONDS_PER_DAY)
    else:
        start = end - lookback

    return DateRange(
        period=period,
        start=start,
        end=end,
        format_string=format_string,
        label=label,
        total_days=total_days,
    )


def is_in_range(moment: datetime, date_range: DateRange) -> bool:
    """Inclusive on both ends"""
    return date_range.start <= _as_utc(moment) <= date_range.end


def filter_by_range(items: Sequence[SentimentDataPoint], date_range: DateRange) -> List[SentimentDataPoint]:
    return [item for item in items if is_in_range(item.timestamp, date_range)]


def filter_events_by_range(events: Sequence[CrisisEvent], date_range: DateRange) -> List[CrisisEvent]:
    return [event for event in events if is_in_range(event.date, date_range)]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _percent_change(before: float, after: float, signed_base: bool) -> float:
    if before == 0:
        return 0.0
    base = abs(before) if signed_base else before
    return (after - before) / base * 100


def calculate_range_metrics(data: Sequence[SentimentDataPoint], date_range: DateRange) -> RangeMetrics:
    """
    Average sentiment, total volume and first-half vs second-half trends.

    The series is filtered by the range first, so passing an unfiltered series
    gives the same answer as passing a filtered one.
    """
    filtered = filter_by_range(data, date_range)
    if not filtered:
        return RangeMetrics()

    sentiments = [point.sentiment for point in filtered]
    volumes = [point.volume for point in filtered]

    midpoint = len(filtered) // 2
    sentiment_trend = _percent_change(
        _mean(sentiments[:midpoint]), _mean(sentiments[midpoint:]), signed_base=True)
    volume_trend = _percent_change(
        _mean(volumes[:midpoint]), _mean(volumes[midpoint:]), signed_base=False)

    return RangeMetrics(
        average_sentiment=round_half_up(_mean(sentiments)),
        total_volume=sum(volumes),
        data_points=len(filtered),
        sentiment_trend=round_half_up(sentiment_trend * 10) / 10,
        volume_trend=round_half_up(volume_trend * 10) / 10,
    )


def get_days_from_start(moment: Optional[datetime] = None) -> int:
    moment = _as_utc(moment) if moment else utc_now()
    return math.floor((moment - DATA_START_DATE).total_seconds() / SECONDS_PER_DAY)


def get_data_collection_status(date_range: Optional[DateRange] = None) -> DataCollectionStatus:
    date_range = date_range or get_date_range(Period.ALL_TIME)
    return DataCollectionStatus(
        start_date=date_range.start,
        end_date=date_range.end,
        total_days=date_range.total_days,
        is_complete=True,
        last_update=utc_now(),
        data_points=date_range.total_days * ESTIMATED_POINTS_PER_DAY,
        label=date_range.label,
    )


def _adjust_kpis(kpis: KPIMetrics, range_metrics: RangeMetrics, period: Period) -> KPIMetrics:
    trend = range_metrics.sentiment_trend

    confidence = (kpis.stakeholder_confidence + trend * 0.3 + range_metrics.volume_trend * 0.1)
    confidence *= CONFIDENCE_MULTIPLIER[period]

    volume_weight = range_metrics.total_volume / 1000
    sentiment_weight = max(0, range_metrics.average_sentiment + 100) / 2
    trend_weight = max(0, trend + 50)
    momentum = (volume_weight * 0.4 + sentiment_weight * 0.4 + trend_weight * 0.2)
    momentum *= MOMENTUM_MULTIPLIER[period]

    return KPIMetrics(
        overall_sentiment=clamp_sentiment(range_metrics.average_sentiment),
        recovery_velocity=clamp_percent(kpis.recovery_velocity + trend),
        stakeholder_confidence=clamp_percent(confidence),
        competitive_advantage=clamp_sentiment(kpis.competitive_advantage + trend * 0.2),
        media_momentum=clamp_percent(momentum),
    )


def build_range_view(metrics: CompanyMetrics, period: Union[Period, str],
                     now: Optional[datetime] = None) -> Tuple[DateRange, RangeMetrics, CompanyMetrics]:
    """
    Project a validated CompanyMetrics onto one period.

    Returns the resolved range, its range metrics and a new CompanyMetrics;
    the input is never modified. For 24h the hourly series drives the range
    metrics, every other period uses the daily series.
    """
    date_range = get_date_range(period, now=now)
    period = date_range.period

    daily = [point.model_copy() for point in filter_by_range(metrics.sentiment_data, date_range)]
    if period == Period.LAST_24_HOURS:
        hourly = [point.model_copy() for point in filter_by_range(metrics.hourly_data, date_range)]
        range_metrics = calculate_range_metrics(hourly, date_range)
    else:
        hourly = [point.model_copy() for point in metrics.hourly_data]
        range_metrics = calculate_range_metrics(daily, date_range)

    trend = range_metrics.sentiment_trend
    volume_scale = date_range.total_days / 365

    platforms = [
        platform.model_copy(update={
            "volume": max(0, round_half_up(platform.volume * volume_scale)),
            "sentiment": clamp_sentiment(platform.sentiment + trend * 0.1),
        })
        for platform in metrics.platform_metrics
    ]
    segments = [
        segment.model_copy(update={
            "volume": max(0, round_half_up(segment.volume * volume_scale)),
            "sentiment": clamp_sentiment(segment.sentiment + trend * 0.2),
            "trend": clamp_sentiment(segment.trend + trend * 0.15),
        })
        for segment in metrics.stakeholder_segments
    ]
    regions = [
        region.model_copy(update={
            "volume": max(0, round_half_up(region.volume * volume_scale)),
            "sentiment": clamp_sentiment(region.sentiment + trend * 0.15),
        })
        for region in metrics.geographic_data
    ]

    projection = metrics.model_copy(deep=True, update={
        "sentiment_data": daily,
        "hourly_data": hourly,
        "kpi_metrics": _adjust_kpis(metrics.kpi_metrics, range_metrics, period),
        "platform_metrics": platforms,
        "stakeholder_segments": segments,
        "geographic_data": regions,
        "crisis_events": [event.model_copy() for event in filter_events_by_range(metrics.crisis_events, date_range)],
    })
    return date_range, range_metrics, projection


__all__ = [
    'DATA_START_DATE', 'PERIOD_SPECS', 'utc_now', 'get_date_range', 'is_in_range',
    'filter_by_range', 'filter_events_by_range', 'calculate_range_metrics',
    'get_days_from_start', 'get_data_collection_status', 'build_range_view',
]
