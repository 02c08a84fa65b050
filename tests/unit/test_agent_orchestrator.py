"""
Unit tests for the dashboard orchestrator's source fallback, caching and period views.
"""
import asyncio

import pytest

from models.schemas import CollectedSignals, DataSourceKind, Period, VerificationBadge
from tools.metric_synthesizers import synthesize_company_metrics
from tools.metrics_validator import InvalidCompanyNameError
from agents.agent_orchestrator import (
    CollectedMetricsSource, DashboardOrchestrator, MetricsSource, MetricsUnavailableError,
    SyntheticMetricsSource
)
from agents.metrics_aggregator import aggregate_collected_signals
from agents.swarm_coordinator import SwarmCoordinator
from fakes import NOW, FakeSignalSource, make_article


class SlowSignalSource(FakeSignalSource):
    """Delays every news search that mentions one company"""

    def __init__(self, slow_company, delay, **kwargs):
        super().__init__(**kwargs)
        self.slow_company = slow_company
        self.delay = delay

    async def search_news(self, query):
        if self.slow_company in query:
            await asyncio.sleep(self.delay)
        return await super().search_news(query)


class StubSource(MetricsSource):
    """Returns (or raises) a fixed outcome and counts loads"""

    def __init__(self, outcome, kind=DataSourceKind.COLLECTED):
        self.outcome = outcome
        self.kind = kind
        self.loads = 0

    async def load(self, company_name, now):
        self.loads += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class TestSourceFallback:

    @pytest.mark.asyncio
    async def test_no_signal_falls_back_to_synthesis(self):
        empty = StubSource(aggregate_collected_signals(CollectedSignals(), NOW))
        orchestrator = DashboardOrchestrator([empty, SyntheticMetricsSource()])

        metrics, data_source, badge = await orchestrator.get_company_metrics("Acme Corp", NOW)

        assert data_source == DataSourceKind.SYNTHETIC
        assert metrics.validation.is_valid
        assert not badge.is_verified
        assert orchestrator.execution_stats["synthetic_results"] == 1

    @pytest.mark.asyncio
    async def test_failing_source_falls_back(self):
        orchestrator = DashboardOrchestrator([StubSource(RuntimeError("collector down")), SyntheticMetricsSource()])
        _, data_source, _ = await orchestrator.get_company_metrics("Acme Corp", NOW)
        assert data_source == DataSourceKind.SYNTHETIC

    @pytest.mark.asyncio
    async def test_valid_first_source_wins(self):
        collected = StubSource(synthesize_company_metrics("Acme Corp", NOW))
        synthetic = StubSource(synthesize_company_metrics("Acme Corp", NOW), kind=DataSourceKind.SYNTHETIC)
        orchestrator = DashboardOrchestrator([collected, synthetic])

        _, data_source, _ = await orchestrator.get_company_metrics("Acme Corp", NOW)

        assert data_source == DataSourceKind.COLLECTED
        assert synthetic.loads == 0
        assert orchestrator.execution_stats["collected_results"] == 1

    @pytest.mark.asyncio
    async def test_invalid_metrics_are_never_returned(self):
        broken = synthesize_company_metrics("Acme Corp", NOW).model_copy(update={"platform_metrics": []})
        orchestrator = DashboardOrchestrator([StubSource(broken, kind=DataSourceKind.SYNTHETIC)])

        with pytest.raises(MetricsUnavailableError) as excinfo:
            await orchestrator.get_company_metrics("Acme Corp", NOW)

        assert 'Platform metrics are required' in excinfo.value.validation.errors
        assert orchestrator.execution_stats["failed_requests"] == 1

    @pytest.mark.asyncio
    async def test_nothing_produced(self):
        orchestrator = DashboardOrchestrator([StubSource(None)])
        with pytest.raises(MetricsUnavailableError) as excinfo:
            await orchestrator.get_company_metrics("Acme Corp", NOW)
        assert excinfo.value.validation.errors == ['No metrics source produced data']

    @pytest.mark.asyncio
    async def test_invalid_name(self):
        orchestrator = DashboardOrchestrator([SyntheticMetricsSource()])
        with pytest.raises(InvalidCompanyNameError):
            await orchestrator.get_company_metrics("A", NOW)


class TestCollectedMetricsSource:

    @pytest.mark.asyncio
    async def test_offline_collection_falls_back(self, agent_config):
        coordinator = SwarmCoordinator(FakeSignalSource(), agent_config, now_provider=lambda: NOW)
        orchestrator = DashboardOrchestrator([CollectedMetricsSource(coordinator), SyntheticMetricsSource()])

        _, data_source, _ = await orchestrator.get_company_metrics("Acme Corp", NOW)

        assert data_source == DataSourceKind.SYNTHETIC
        assert coordinator.get_swarm().company_name == "Acme Corp"

    @pytest.mark.asyncio
    async def test_collected_metrics_are_used(self, agent_config):
        article = make_article("Kaseya growth partnership success", "Kaseya expands", days_ago=1,
                               source="Tech Blog")
        coordinator = SwarmCoordinator(FakeSignalSource(news=[article]), agent_config, now_provider=lambda: NOW)
        orchestrator = DashboardOrchestrator([CollectedMetricsSource(coordinator), SyntheticMetricsSource()])

        metrics, data_source, badge = await orchestrator.get_company_metrics("Kaseya", NOW)

        assert data_source == DataSourceKind.COLLECTED
        assert [p.platform for p in metrics.platform_metrics] == ['News Media']
        assert metrics.crisis_events == []
        assert not badge.is_verified


class TestBuildDashboard:

    @pytest.mark.asyncio
    async def test_period_projection(self):
        orchestrator = DashboardOrchestrator([SyntheticMetricsSource()])

        view = await orchestrator.build_dashboard("  Acme Corp  ", "7d", now=NOW)

        assert view.company_name == "Acme Corp"
        assert view.period == Period.LAST_7_DAYS
        assert view.range_metrics.data_points == 7
        assert len(view.metrics.sentiment_data) == 7
        assert view.data_source == DataSourceKind.SYNTHETIC
        assert view.generated_at == NOW

    @pytest.mark.asyncio
    async def test_reprojection_uses_cache(self):
        source = StubSource(synthesize_company_metrics("Acme Corp", NOW), kind=DataSourceKind.SYNTHETIC)
        orchestrator = DashboardOrchestrator([source])

        await orchestrator.build_dashboard("Acme Corp", Period.LAST_30_DAYS, now=NOW)
        view = await orchestrator.build_dashboard("acme corp", Period.LAST_24_HOURS, now=NOW, collect=False)
        assert source.loads == 1
        assert view.range_metrics.data_points == 25

        await orchestrator.build_dashboard("Acme Corp", Period.LAST_7_DAYS, now=NOW)
        assert source.loads == 2

    @pytest.mark.asyncio
    async def test_cache_miss_loads(self):
        source = StubSource(synthesize_company_metrics("Acme Corp", NOW), kind=DataSourceKind.SYNTHETIC)
        orchestrator = DashboardOrchestrator([source])
        await orchestrator.build_dashboard("Acme Corp", "30d", now=NOW, collect=False)
        assert source.loads == 1


class TestOverlappingRequests:

    @pytest.mark.asyncio
    async def test_superseded_request_never_gets_another_company(self, agent_config):
        article = make_article("Kaseya growth partnership success", "Kaseya expands", days_ago=1,
                               source="Tech Blog")
        source = SlowSignalSource("Microsoft", 0.1, news=lambda query: [] if "Microsoft" in query else [article])
        coordinator = SwarmCoordinator(source, agent_config, now_provider=lambda: NOW)
        orchestrator = DashboardOrchestrator([CollectedMetricsSource(coordinator), SyntheticMetricsSource()])

        microsoft = asyncio.create_task(orchestrator.get_company_metrics("Microsoft", NOW))
        await asyncio.sleep(0.05)
        _, kaseya_source, _ = await orchestrator.get_company_metrics("Kaseya", NOW)
        microsoft_metrics, microsoft_source, microsoft_badge = await microsoft

        assert kaseya_source == DataSourceKind.COLLECTED
        assert microsoft_source == DataSourceKind.SYNTHETIC
        assert "ConnectWise" not in [c.name for c in microsoft_metrics.competitor_data]
        assert not any("Kaseya" in event.title for event in microsoft_metrics.crisis_events)
        assert not microsoft_badge.is_verified
        assert orchestrator.cache["microsoft"][1] == DataSourceKind.SYNTHETIC
        assert coordinator.execution_stats["superseded_runs"] == 1

    @pytest.mark.asyncio
    async def test_badge_is_taken_once(self, agent_config):
        coordinator = SwarmCoordinator(FakeSignalSource(), agent_config, now_provider=lambda: NOW)
        source = CollectedMetricsSource(coordinator)

        await source.load("Acme Corp", NOW)

        assert not source.verification_badge("Acme Corp").is_verified
        assert source._badges == {}
        assert source.verification_badge("Acme Corp") == VerificationBadge()
