"""
Metrics Aggregator
Derives CompanyMetrics from what a swarm run actually collected.
Days and hours without signal read 0/0/0 and nothing is filled in.
"""

from typing import Dict, List, NamedTuple, Sequence
from datetime import datetime, timedelta
import structlog

from models.schemas import (
    AgentStatus, AgentSwarm, CollectedSignals, CollectionMetrics, CompanyMetrics,
    CompetitorData, CrisisEvent, GeographicData, KPIMetrics, NewsArticleRecord,
    PlatformMetrics, Priority, SentimentDataPoint, SentimentDistribution,
    StakeholderSegment, ThreatOpportunity, ValidationResult
)
from tools.company_context import clamp, clamp_percent, clamp_sentiment
from tools.date_range import DATA_START_DATE, SECONDS_PER_DAY
from tools.metric_synthesizers import HOURLY_POINTS, days_since_start
from tools.signal_scoring import (
    forum_post_sentiment, forum_sentiment, news_article_sentiment, news_sentiment,
    professional_sentiment, quote_sentiment, verified_article_sentiment,
    verified_news_sentiment
)
from tools.threat_intelligence import article_to_threat_opportunity

logger = structlog.get_logger()

# Relative weight of each stream in a day's blended sentiment
STREAM_WEIGHTS: Dict[str, float] = {
    "forum": 0.3,
    "news": 0.4,
    "verified_news": 0.3,
    "quote": 0.3,
    "professional": 0.3,
}

# (segment, priority)
STAKEHOLDER_PRIORITIES = [
    ('Customers', Priority.HIGH),
    ('Investors', Priority.CRITICAL),
    ('Employees', Priority.MEDIUM),
    ('Regulators', Priority.HIGH),
]

ONE_HOUR = timedelta(hours=1)


class SignalSample(NamedTuple):
    timestamp: datetime
    sentiment: float
    confidence: float
    weight: float


def collect_samples(signals: CollectedSignals, now: datetime) -> List[SignalSample]:
    """One dated, scored sample per collected record; undated articles sit at the run clock"""
    samples = [
        SignalSample(post.created_at, forum_post_sentiment(post), post.confidence, STREAM_WEIGHTS["forum"])
        for post in signals.forum_posts
    ]
    samples.extend(
        SignalSample(article.published_at if article.dated else now, news_article_sentiment(article),
                     article.confidence, STREAM_WEIGHTS["news"])
        for article in signals.news_articles
    )
    samples.extend(
        SignalSample(article.published_at, verified_article_sentiment(article), article.confidence,
                     STREAM_WEIGHTS["verified_news"])
        for article in signals.verified_news
    )
    samples.extend(
        SignalSample(quote.timestamp, clamp(quote.change_percent * 10, -50, 50), quote.confidence,
                     STREAM_WEIGHTS["quote"])
        for quote in signals.stock_quotes
    )
    samples.extend(
        SignalSample(post.published_at, post.sentiment, post.confidence, STREAM_WEIGHTS["professional"])
        for post in signals.professional_posts
    )
    return samples


def summarize_bucket(samples: Sequence[SignalSample], timestamp: datetime) -> SentimentDataPoint:
    if not samples:
        return SentimentDataPoint(timestamp=timestamp, sentiment=0, volume=0, platform="aggregate", confidence=0.0)

    total_weight = sum(sample.weight for sample in samples)
    sentiment = sum(sample.sentiment * sample.weight for sample in samples) / total_weight
    confidence = sum(sample.confidence for sample in samples) / len(samples)
    return SentimentDataPoint(
        timestamp=timestamp,
        sentiment=clamp_sentiment(sentiment),
        volume=len(samples),
        platform="aggregate",
        confidence=round(clamp(confidence, 0.0, 1.0), 4),
    )


def build_daily_series(signals: CollectedSignals, now: datetime) -> List[SentimentDataPoint]:
    """Daily buckets on the same grid as the synthetic series, DATA_START_DATE to now"""
    days = days_since_start(now)
    buckets: List[List[SignalSample]] = [[] for _ in range(days)]

    for sample in collect_samples(signals, now):
        if sample.timestamp < DATA_START_DATE or sample.timestamp > now:
            continue
        index = int((sample.timestamp - DATA_START_DATE).total_seconds() // SECONDS_PER_DAY)
        if index < days:
            buckets[index].append(sample)

    return [
        summarize_bucket(bucket, DATA_START_DATE + timedelta(days=index))
        for index, bucket in enumerate(buckets)
    ]


def build_hourly_series(signals: CollectedSignals, now: datetime) -> List[SentimentDataPoint]:
    """Hourly points ending now; each covers the hour leading up to its timestamp"""
    samples = collect_samples(signals, now)
    series = []
    for hours_ago in range(HOURLY_POINTS - 1, -1, -1):
        moment = now - timedelta(hours=hours_ago)
        bucket = [sample for sample in samples if moment - ONE_HOUR < sample.timestamp <= moment]
        series.append(summarize_bucket(bucket, moment))
    return series


def build_kpis(signals: CollectedSignals) -> KPIMetrics:
    overall = clamp_sentiment(news_sentiment(signals.news_articles))
    media_momentum = min(100, len(signals.news_articles) * 10)

    recovery_velocity = 50
    if signals.stock_quotes:
        recovery_velocity = clamp_percent(50 + signals.stock_quotes[-1].change_percent * 5)

    competitive_advantage = 0
    if signals.competitor_mentions:
        mean_competitor = (sum(m.sentiment for m in signals.competitor_mentions)
                           / len(signals.competitor_mentions))
        competitive_advantage = clamp_sentiment(overall - mean_competitor)

    return KPIMetrics(
        overall_sentiment=overall,
        recovery_velocity=recovery_velocity,
        stakeholder_confidence=clamp_percent(50 + overall * 0.5),
        competitive_advantage=competitive_advantage,
        media_momentum=media_momentum,
    )


def build_platform_metrics(signals: CollectedSignals) -> List[PlatformMetrics]:
    """A platform is listed only when it produced records"""
    platforms: List[PlatformMetrics] = []

    posts = signals.forum_posts
    if posts:
        mean_comments = sum(post.num_comments for post in posts) / len(posts)
        platforms.append(PlatformMetrics(
            platform='Reddit',
            sentiment=clamp_sentiment(forum_sentiment(posts)),
            volume=len(posts),
            engagement=float(clamp_percent(mean_comments * 0.1)),
            reach=max(0, sum(post.score * 100 for post in posts)),
            confidence=0.9,
        ))

    news = signals.news_articles
    if news:
        platforms.append(PlatformMetrics(
            platform='News Media',
            sentiment=clamp_sentiment(news_sentiment(news)),
            volume=len(news),
            engagement=85.0,
            reach=len(news) * 50000,
            confidence=0.95,
        ))

    verified = signals.verified_news
    if verified:
        platforms.append(PlatformMetrics(
            platform='Verified News Sources',
            sentiment=clamp_sentiment(verified_news_sentiment(verified)),
            volume=len(verified),
            engagement=95.0,
            reach=len(verified) * 100000,
            confidence=0.98,
        ))

    professional = signals.professional_posts
    if professional:
        interactions = [p.engagement.likes + p.engagement.comments + p.engagement.shares for p in professional]
        platforms.append(PlatformMetrics(
            platform='LinkedIn',
            sentiment=clamp_sentiment(professional_sentiment(professional)),
            volume=len(professional),
            engagement=float(clamp_percent(sum(interactions) / len(interactions) / 10)),
            reach=sum(interactions) * 100,
            confidence=round(sum(p.confidence for p in professional) / len(professional), 4),
        ))

    return platforms


def article_trend(articles: Sequence[NewsArticleRecord]) -> int:
    """Later half minus earlier half of the articles' sentiment, by publication date"""
    if len(articles) < 2:
        return 0
    ordered = sorted(articles, key=lambda article: article.published_at)
    middle = len(ordered) // 2
    return clamp_sentiment(news_sentiment(ordered[middle:]) - news_sentiment(ordered[:middle]))


def quote_trend(signals: CollectedSignals) -> int:
    """Percent move from the first to the last collected close"""
    quotes = signals.stock_quotes
    if len(quotes) < 2 or quotes[0].price == 0:
        return 0
    return clamp_sentiment((quotes[-1].price - quotes[0].price) / quotes[0].price * 100)


def build_stakeholder_segments(signals: CollectedSignals) -> List[StakeholderSegment]:
    segments: List[StakeholderSegment] = []
    for segment, priority in STAKEHOLDER_PRIORITIES:
        articles = signals.stakeholder_articles.get(segment, [])

        if segment == 'Investors' and signals.stock_quotes:
            segments.append(StakeholderSegment(
                segment=segment,
                sentiment=clamp_sentiment(quote_sentiment(signals.stock_quotes)),
                volume=len(signals.stock_quotes) + len(articles),
                trend=quote_trend(signals),
                priority=priority.value,
            ))
            continue

        if not articles:
            continue
        segments.append(StakeholderSegment(
            segment=segment,
            sentiment=clamp_sentiment(news_sentiment(articles)),
            volume=len(articles),
            trend=article_trend(articles),
            priority=priority.value,
        ))
    return segments


def build_geographic_data(signals: CollectedSignals) -> List[GeographicData]:
    return [
        GeographicData(
            region=mention.region,
            sentiment=clamp_sentiment(mention.sentiment),
            volume=mention.mentions,
            risk=clamp_percent(50 - mention.sentiment * 0.5),
            lat=mention.coordinates.lat,
            lng=mention.coordinates.lng,
        )
        for mention in signals.geographic_mentions
    ]


def build_competitor_data(signals: CollectedSignals) -> List[CompetitorData]:
    """Market share is share of voice across the company's own news and every competitor's"""
    mentions = signals.competitor_mentions
    if not mentions:
        return []

    overall = news_sentiment(signals.news_articles)
    total_voice = len(signals.news_articles) + sum(m.mentions for m in mentions)
    return [
        CompetitorData(
            name=mention.company,
            sentiment=clamp_sentiment(mention.sentiment),
            market_share=clamp_percent(mention.mentions / total_voice * 100),
            trend=0,
            advantage=clamp_sentiment(overall - mention.sentiment),
        )
        for mention in mentions
    ]


def build_crisis_events(signals: CollectedSignals) -> List[CrisisEvent]:
    """Only events found in the news; placeholder scenarios stay out of collected metrics"""
    validation = signals.crisis_validation
    if validation is None:
        return []
    events = [
        CrisisEvent(
            date=event.date,
            title=event.title,
            type=event.type,
            impact=event.impact,
            description=event.description,
        )
        for event in validation.verified_events if event.actual_event
    ]
    return sorted(events, key=lambda event: event.date)


def build_threats_opportunities(signals: CollectedSignals) -> List[ThreatOpportunity]:
    items = list(signals.validated_items)
    items.extend(article_to_threat_opportunity(article, index)
                 for index, article in enumerate(signals.verified_news))
    items.extend(signals.detected_items)
    return items


def aggregate_collected_signals(signals: CollectedSignals, now: datetime) -> CompanyMetrics:
    """Merge every collected sub-collection into one CompanyMetrics; validation is left to the caller"""
    metrics = CompanyMetrics(
        sentiment_data=build_daily_series(signals, now),
        hourly_data=build_hourly_series(signals, now),
        kpi_metrics=build_kpis(signals),
        platform_metrics=build_platform_metrics(signals),
        stakeholder_segments=build_stakeholder_segments(signals),
        geographic_data=build_geographic_data(signals),
        competitor_data=build_competitor_data(signals),
        crisis_events=build_crisis_events(signals),
        threats_opportunities=build_threats_opportunities(signals),
        validation=ValidationResult(),
    )

    logger.info("Collected signals aggregated",
                days_with_signal=sum(1 for point in metrics.sentiment_data if point.volume > 0),
                platforms=len(metrics.platform_metrics),
                regions=len(metrics.geographic_data),
                competitors=len(metrics.competitor_data),
                crisis_events=len(metrics.crisis_events))
    return metrics


def has_signal(metrics: CompanyMetrics) -> bool:
    return any(point.volume > 0 for point in metrics.sentiment_data)


def build_collection_metrics(signals: CollectedSignals, swarm: AgentSwarm) -> CollectionMetrics:
    """Summary of a completed run, computed from the records themselves"""
    scores = [news_article_sentiment(a) for a in signals.news_articles]
    scores += [forum_post_sentiment(p) for p in signals.forum_posts]
    scores += [verified_article_sentiment(a) for a in signals.verified_news]
    scores += [p.sentiment for p in signals.professional_posts]

    confidences = [r.confidence for r in signals.news_articles]
    confidences += [r.confidence for r in signals.forum_posts]
    confidences += [r.confidence for r in signals.verified_news]
    confidences += [r.confidence for r in signals.stock_quotes]
    confidences += [r.confidence for r in signals.professional_posts]

    actual_events = build_crisis_events(signals)
    completed = sum(1 for agent in swarm.agents if agent.status == AgentStatus.COMPLETED)

    return CollectionMetrics(
        total_mentions=swarm.total_data_points,
        sentiment_distribution=SentimentDistribution(
            positive=sum(1 for score in scores if score > 0),
            neutral=sum(1 for score in scores if score == 0),
            negative=sum(1 for score in scores if score < 0),
        ),
        platform_breakdown={
            'Reddit': len(signals.forum_posts),
            'Google News': len(signals.news_articles),
            'Verified News': len(signals.verified_news),
            'Financial APIs': len(signals.stock_quotes),
            'Crisis Events': len(actual_events),
            'LinkedIn': len(signals.professional_posts),
        },
        geographic_distribution={m.region: m.mentions for m in signals.geographic_mentions},
        confidence_score=round(sum(confidences) / len(confidences), 4) if confidences else 0.0,
        data_quality=round(completed / len(swarm.agents), 4) if swarm.agents else 0.0,
    )


__all__ = [
    'SignalSample', 'collect_samples', 'summarize_bucket', 'build_daily_series',
    'build_hourly_series', 'build_kpis', 'build_platform_metrics',
    'build_stakeholder_segments', 'build_geographic_data', 'build_competitor_data',
    'build_crisis_events', 'build_threats_opportunities', 'aggregate_collected_signals',
    'has_signal', 'build_collection_metrics',
]
