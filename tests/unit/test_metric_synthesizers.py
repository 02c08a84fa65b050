"""
Unit tests for deterministic company metric synthesis.
Covers series lengths, crisis phases, the crisis timeline and validity of the output.
"""
from datetime import timedelta

from models.schemas import CrisisEventType
from tools.company_context import crisis_day
from tools.date_range import DATA_START_DATE
from tools.metric_synthesizers import (
    days_since_start, generate_fallback_crisis_events, generate_hourly_series,
    generate_sentiment_series, sentiment_base_score, synthesize_company_metrics
)
from tools.metrics_validator import validate_company_metrics

COMPANIES = ["Kaseya", "Acme Corp", "First National Bank", "Pfizer Pharma", "Gulf Oil", "Consumer Goods Ltd"]


class TestSentimentSeries:

    def test_days_since_start(self, now):
        # 2025-01-01 to 2025-09-15 12:00 is 257.5 days
        assert days_since_start(now) == 258

    def test_daily_series_grid(self):
        series = generate_sentiment_series("Acme Corp", 40)
        assert len(series) == 40
        assert series[0].timestamp == DATA_START_DATE
        assert series[-1].timestamp == DATA_START_DATE + timedelta(days=39)
        assert all(point.platform == "aggregate" for point in series)

    def test_series_is_reproducible(self):
        first = generate_sentiment_series("Acme Corp", 60)
        second = generate_sentiment_series("Acme Corp", 60)
        assert [p.model_dump() for p in first] == [p.model_dump() for p in second]

    def test_crisis_drop(self):
        for name in COMPANIES:
            genesis = crisis_day(name)
            before = sentiment_base_score(genesis - 1, name)
            during = sentiment_base_score(genesis, name)
            assert during <= -65
            assert before > during

    def test_recovery_moves_up_from_the_trough(self):
        name = "Kaseya"
        genesis = crisis_day(name)
        assert sentiment_base_score(genesis + 60, name) > sentiment_base_score(genesis + 7, name)

    def test_hourly_series(self, now):
        series = generate_hourly_series("Acme Corp", now)
        assert len(series) == 25
        assert series[-1].timestamp == now
        assert series[0].timestamp == now - timedelta(hours=24)


class TestCrisisTimeline:

    def test_genesis_on_crisis_day(self):
        events = generate_fallback_crisis_events("Kaseya")
        assert events[0].date == DATA_START_DATE + timedelta(days=crisis_day("Kaseya"))
        assert events[0].title.startswith("Kaseya ")

    def test_series_breaks_on_the_genesis_day(self):
        for name in COMPANIES:
            series = generate_sentiment_series(name, 365)
            boundary = next(index for index, point in enumerate(series) if point.sentiment <= -50)
            genesis = generate_fallback_crisis_events(name)[0]
            assert series[boundary].timestamp == genesis.date
            assert (genesis.date - DATA_START_DATE).days == boundary

    def test_leadership_response_two_days_later(self):
        events = generate_fallback_crisis_events("Kaseya")
        response = events[1]
        assert response.type == CrisisEventType.RESPONSE
        assert response.date - events[0].date == timedelta(days=2)

    def test_events_are_chronological(self):
        for name in COMPANIES:
            dates = [event.date for event in generate_fallback_crisis_events(name)]
            assert dates == sorted(dates)


class TestSynthesizeCompanyMetrics:

    def test_shapes(self, now):
        metrics = synthesize_company_metrics("Acme Corp", now)
        assert len(metrics.sentiment_data) == days_since_start(now)
        assert len(metrics.hourly_data) == 25
        assert len(metrics.platform_metrics) == 6
        assert len(metrics.stakeholder_segments) == 6
        assert len(metrics.geographic_data) == 6
        assert metrics.competitor_data

    def test_output_validates(self, now):
        for name in COMPANIES:
            result = validate_company_metrics(synthesize_company_metrics(name, now))
            assert result.is_valid, (name, result.errors)

    def test_reproducible(self, now):
        first = synthesize_company_metrics("Kaseya", now)
        second = synthesize_company_metrics("Kaseya", now)
        assert first.model_dump() == second.model_dump()
