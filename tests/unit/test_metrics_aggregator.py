"""
Unit tests for deriving CompanyMetrics from collected signals.
Nothing is invented: empty inputs stay empty and quiet days read zero.
"""
from datetime import timedelta

from models.schemas import (
    AgentStatus, AgentSwarm, AgentType, CollectedSignals, CompetitorMentionRecord, Coordinates,
    CrisisEventType, CrisisValidationResult, DataAgent, ForumPostRecord, GeographicMentionRecord,
    StockQuoteRecord, ValidatedCrisisEvent
)
from tools.date_range import DATA_START_DATE
from agents.metrics_aggregator import (
    aggregate_collected_signals, build_collection_metrics, build_competitor_data,
    build_crisis_events, build_daily_series, build_geographic_data, build_hourly_series,
    build_kpis, build_platform_metrics, build_stakeholder_segments, has_signal
)
from fakes import NOW, make_article

GOOD_NEWS = make_article("Kaseya growth partnership success", days_ago=3)


def quote(price: float, change_percent: float, days_ago: int) -> StockQuoteRecord:
    return StockQuoteRecord(symbol="KASEYA", price=price, change=0.0, change_percent=change_percent,
                            volume=1000, market_cap=1000000, timestamp=NOW - timedelta(days=days_ago))


def crisis_event(event_id: str, actual_event: bool, days_ago: int) -> ValidatedCrisisEvent:
    return ValidatedCrisisEvent(
        id=event_id, title=f"Kaseya event {event_id}", date=NOW - timedelta(days=days_ago),
        type=CrisisEventType.CRISIS, impact=-60, description="", verified=actual_event,
        verification_score=70, company_relevance=60, actual_event=actual_event,
    )


class TestSeries:

    def test_empty_signals(self):
        metrics = aggregate_collected_signals(CollectedSignals(), NOW)

        assert len(metrics.sentiment_data) == 258
        assert all(point.volume == 0 and point.sentiment == 0 for point in metrics.sentiment_data)
        assert len(metrics.hourly_data) == 25
        assert metrics.platform_metrics == []
        assert metrics.crisis_events == []
        assert not has_signal(metrics)

    def test_article_lands_on_its_day(self):
        series = build_daily_series(CollectedSignals(news_articles=[GOOD_NEWS]), NOW)
        index = (GOOD_NEWS.published_at - DATA_START_DATE).days

        assert series[index].volume == 1
        assert series[index].sentiment == 30
        assert series[index].timestamp == DATA_START_DATE + timedelta(days=index)
        assert sum(point.volume for point in series) == 1

    def test_streams_blend_by_weight(self):
        post = ForumPostRecord(id="p1", title="Kaseya", score=30, created_at=GOOD_NEWS.published_at)
        series = build_daily_series(CollectedSignals(news_articles=[GOOD_NEWS], forum_posts=[post]), NOW)
        point = series[(GOOD_NEWS.published_at - DATA_START_DATE).days]

        # (30 * 0.4 + 40 * 0.3) / 0.7
        assert point.sentiment == 34
        assert point.volume == 2

    def test_records_outside_the_grid_are_ignored(self):
        future = make_article("Kaseya growth", days_ago=-1)
        ancient = make_article("Kaseya growth", days_ago=400)
        series = build_daily_series(CollectedSignals(news_articles=[future, ancient]), NOW)
        assert sum(point.volume for point in series) == 0

    def test_undated_article_sits_at_the_run_clock(self):
        undated = make_article("Kaseya growth", days_ago=-1 / 1440).model_copy(update={"dated": False})
        signals = CollectedSignals(news_articles=[undated])

        daily = build_daily_series(signals, NOW)
        hourly = build_hourly_series(signals, NOW)

        assert daily[-1].volume == 1
        assert sum(point.volume for point in daily) == 1
        assert hourly[-1].volume == 1

    def test_hourly_bucket(self):
        recent = make_article("Kaseya growth", days_ago=1 / 48)
        series = build_hourly_series(CollectedSignals(news_articles=[recent]), NOW)

        assert series[-1].timestamp == NOW
        assert series[-1].volume == 1
        assert sum(point.volume for point in series) == 1


class TestComponents:

    def test_kpis(self):
        kpis = build_kpis(CollectedSignals(news_articles=[GOOD_NEWS]))
        assert kpis.overall_sentiment == 30
        assert kpis.media_momentum == 10
        assert kpis.stakeholder_confidence == 65
        assert kpis.recovery_velocity == 50

    def test_only_platforms_with_records(self):
        platforms = build_platform_metrics(CollectedSignals(news_articles=[GOOD_NEWS]))
        assert [p.platform for p in platforms] == ['News Media']
        assert platforms[0].reach == 50000

    def test_share_of_voice(self):
        signals = CollectedSignals(
            news_articles=[GOOD_NEWS, GOOD_NEWS],
            competitor_mentions=[
                CompetitorMentionRecord(company="Datto", mentions=3, sentiment=10),
                CompetitorMentionRecord(company="ConnectWise", mentions=5, sentiment=-10),
            ],
        )
        competitors = build_competitor_data(signals)
        assert [(c.name, c.market_share) for c in competitors] == [("Datto", 30), ("ConnectWise", 50)]
        assert [c.advantage for c in competitors] == [20, 40]
        assert all(c.trend == 0 for c in competitors)

    def test_investors_follow_quotes(self):
        signals = CollectedSignals(stock_quotes=[quote(100.0, 0.0, 1), quote(110.0, 10.0, 0)])
        segments = build_stakeholder_segments(signals)

        assert [s.segment for s in segments] == ['Investors']
        investors = segments[0]
        assert investors.sentiment == 50
        assert investors.trend == 10
        assert investors.volume == 2
        assert investors.priority == "critical"

    def test_geographic_risk(self):
        mention = GeographicMentionRecord(region="Europe", country="European Union", mentions=4, sentiment=20,
                                          coordinates=Coordinates(lat=54.5, lng=15.3))
        regions = build_geographic_data(CollectedSignals(geographic_mentions=[mention]))
        assert regions[0].risk == 40
        assert regions[0].volume == 4
        assert regions[0].lat == 54.5

    def test_only_actual_crisis_events(self):
        validation = CrisisValidationResult(is_valid=True, verified_events=[
            crisis_event("validated-0", True, 5),
            crisis_event("placeholder-0", False, 10),
            crisis_event("validated-1", True, 20),
        ])
        events = build_crisis_events(CollectedSignals(crisis_validation=validation))
        assert [e.title for e in events] == ["Kaseya event validated-1", "Kaseya event validated-0"]


class TestCollectionMetrics:

    def test_summary(self):
        swarm = AgentSwarm(
            company_name="Kaseya",
            start_date=DATA_START_DATE,
            end_date=NOW,
            estimated_completion=NOW,
            total_data_points=3,
            agents=[
                DataAgent(id="news-collector", name="News", type=AgentType.CRISIS, status=AgentStatus.COMPLETED),
                DataAgent(id="reddit-collector", name="Reddit", type=AgentType.PLATFORM, status=AgentStatus.ERROR),
            ],
        )
        post = ForumPostRecord(id="p1", score=0, created_at=NOW)
        signals = CollectedSignals(news_articles=[GOOD_NEWS, make_article("Kaseya update")], forum_posts=[post])

        summary = build_collection_metrics(signals, swarm)

        assert summary.total_mentions == 3
        assert summary.data_quality == 0.5
        assert summary.platform_breakdown['Google News'] == 2
        assert summary.platform_breakdown['Reddit'] == 1
        distribution = summary.sentiment_distribution
        assert (distribution.positive, distribution.neutral, distribution.negative) == (1, 1, 1)
