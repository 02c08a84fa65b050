"""
Unit tests for period resolution, range metrics and the dashboard projection.
"""
from datetime import datetime, timedelta

import pytest

from models.schemas import Period, SentimentDataPoint
from tools.date_range import (
    DATA_START_DATE, build_range_view, calculate_range_metrics, filter_by_range,
    get_data_collection_status, get_date_range, get_days_from_start
)
from tools.metric_synthesizers import generate_sentiment_series, synthesize_company_metrics


def series(now, sentiments, volumes):
    """One point per day, oldest first, ending at `now`"""
    count = len(sentiments)
    return [
        SentimentDataPoint(timestamp=now - timedelta(days=count - 1 - index), sentiment=sentiment,
                           volume=volume, confidence=0.9)
        for index, (sentiment, volume) in enumerate(zip(sentiments, volumes))
    ]


class TestGetDateRange:

    def test_last_30_days(self, now):
        date_range = get_date_range("30d", now)
        assert date_range.period == Period.LAST_30_DAYS
        assert date_range.start == now - timedelta(days=30)
        assert date_range.end == now
        assert date_range.total_days == 30
        assert date_range.label == "Last 30 Days"

    def test_last_24_hours(self, now):
        date_range = get_date_range(Period.LAST_24_HOURS, now)
        assert date_range.start == now - timedelta(hours=24)
        assert date_range.total_days == 1
        assert date_range.format_string == "HH:mm"

    def test_all_time_starts_at_data_start(self, now):
        date_range = get_date_range("all", now)
        assert date_range.start == DATA_START_DATE
        assert date_range.total_days == 258

    def test_unknown_period(self, now):
        with pytest.raises(ValueError):
            get_date_range("90d", now)

    def test_naive_now_is_utc(self, now):
        naive = now.replace(tzinfo=None)
        assert get_date_range("7d", naive).end == now

    def test_days_from_start(self, now):
        assert get_days_from_start(now) == 257
        assert get_days_from_start(DATA_START_DATE) == 0


class TestRangeMetrics:

    def test_empty_range(self, now):
        metrics = calculate_range_metrics([], get_date_range("7d", now))
        assert metrics.data_points == 0
        assert metrics.average_sentiment == 0
        assert metrics.sentiment_trend == 0.0

    def test_halves_trend(self, now):
        data = series(now, [10, 10, 20, 20], [100, 100, 200, 200])
        metrics = calculate_range_metrics(data, get_date_range("7d", now))
        assert metrics.average_sentiment == 15
        assert metrics.total_volume == 600
        assert metrics.data_points == 4
        assert metrics.sentiment_trend == 100.0
        assert metrics.volume_trend == 100.0

    def test_negative_base_uses_magnitude(self, now):
        data = series(now, [-20, -20, -10, -10], [10, 10, 10, 10])
        metrics = calculate_range_metrics(data, get_date_range("7d", now))
        assert metrics.sentiment_trend == 50.0

    def test_single_point_has_no_trend(self, now):
        metrics = calculate_range_metrics(series(now, [40], [5]), get_date_range("7d", now))
        assert metrics.data_points == 1
        assert metrics.sentiment_trend == 0.0

    def test_filters_out_of_range_points(self, now):
        data = series(now, [90] + [10] * 8, [1] * 9)
        date_range = get_date_range("7d", now)
        # the oldest point sits outside the window
        assert calculate_range_metrics(data, date_range) == calculate_range_metrics(
            filter_by_range(data, date_range), date_range)
        assert calculate_range_metrics(data, date_range).average_sentiment == 10

    def test_filtering_is_idempotent(self, now):
        data = synthesize_company_metrics("Acme Corp", now).sentiment_data
        for period in ("7d", "30d", "1y", "all"):
            date_range = get_date_range(period, now)
            once = filter_by_range(data, date_range)
            assert filter_by_range(once, date_range) == once

    def test_bounds_are_inclusive(self, now):
        date_range = get_date_range("7d", now)
        edge = [SentimentDataPoint(timestamp=date_range.start, sentiment=0, volume=1, confidence=1.0),
                SentimentDataPoint(timestamp=date_range.end, sentiment=0, volume=1, confidence=1.0)]
        assert len(filter_by_range(edge, date_range)) == 2


class TestBuildRangeView:

    def test_30d_view_of_a_full_year(self, now):
        data = generate_sentiment_series("Kaseya", 365)
        date_range = get_date_range("30d", now)

        filtered = filter_by_range(data, date_range)
        range_metrics = calculate_range_metrics(data, date_range)

        assert 0 < len(filtered) <= 30
        assert range_metrics.data_points == len(filtered)
        assert all(date_range.start <= p.timestamp <= date_range.end for p in filtered)

    def test_projection_matches_range(self, now):
        metrics = synthesize_company_metrics("Acme Corp", now)
        date_range, range_metrics, projection = build_range_view(metrics, "7d", now)
        assert date_range.total_days == 7
        assert range_metrics.data_points == len(projection.sentiment_data) == 7
        assert all(date_range.start <= p.timestamp <= date_range.end for p in projection.sentiment_data)

    def test_input_is_not_modified(self, now):
        metrics = synthesize_company_metrics("Acme Corp", now)
        before = metrics.model_dump()
        build_range_view(metrics, "24h", now)
        build_range_view(metrics, "1y", now)
        assert metrics.model_dump() == before

    def test_24h_uses_hourly_series(self, now):
        metrics = synthesize_company_metrics("Acme Corp", now)
        _, range_metrics, projection = build_range_view(metrics, Period.LAST_24_HOURS, now)
        assert range_metrics.data_points == len(projection.hourly_data) == 25

    def test_projection_stays_in_bounds(self, now):
        metrics = synthesize_company_metrics("First National Bank", now)
        for period in Period:
            _, _, projection = build_range_view(metrics, period, now)
            assert -100 <= projection.kpi_metrics.overall_sentiment <= 100
            assert 0 <= projection.kpi_metrics.media_momentum <= 100
            assert all(p.volume >= 0 for p in projection.platform_metrics)


class TestCollectionStatus:

    def test_status_for_range(self, now):
        status = get_data_collection_status(get_date_range("30d", now))
        assert status.total_days == 30
        assert status.data_points == 30000
        assert status.is_complete
        assert isinstance(status.last_update, datetime)
