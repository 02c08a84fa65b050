"""
Dashboard Orchestrator - Produces validated, date-range filtered dashboard views
Tries each configured metrics source in order: collected signals first, synthesis as the fallback
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple, Union
from datetime import datetime
from cachetools import TTLCache
import structlog

from models.schemas import (
    CompanyMetrics, CrisisVerificationResult, DashboardView, DataSourceKind, Period,
    ValidationResult, VerificationBadge
)
from agents.swarm_coordinator import SwarmCoordinator
from agents.metrics_aggregator import has_signal
from tools.date_range import build_range_view, utc_now
from tools.metric_synthesizers import synthesize_company_metrics
from tools.metrics_validator import require_valid_company_name, validate_company_metrics
from infrastructure.monitoring import metrics_collector, structured_logger

logger = structlog.get_logger()


class MetricsUnavailableError(Exception):
    """No metrics source produced a valid result"""

    def __init__(self, company_name: str, validation: ValidationResult):
        self.company_name = company_name
        self.validation = validation
        super().__init__(f"No valid metrics available for {company_name}")


class MetricsSource(ABC):
    """One way of producing CompanyMetrics for a company"""

    kind: DataSourceKind

    @abstractmethod
    async def load(self, company_name: str, now: datetime) -> Optional[CompanyMetrics]:
        pass

    def verification_badge(self, company_name: str) -> VerificationBadge:
        return VerificationBadge()


def badge_for(verification: Optional[CrisisVerificationResult]) -> VerificationBadge:
    if verification is None:
        return VerificationBadge()
    return VerificationBadge(
        is_verified=verification.is_verified,
        confidence=verification.confidence,
        verified_events=len(verification.verified_events),
    )


class CollectedMetricsSource(MetricsSource):
    """Runs the agent swarm and aggregates what it actually collected"""

    kind = DataSourceKind.COLLECTED

    def __init__(self, coordinator: SwarmCoordinator) -> None:
        self.coordinator = coordinator
        # company key -> badge from that company's own run, taken by the next verification_badge()
        self._badges: Dict[str, VerificationBadge] = {}

    async def load(self, company_name: str, now: datetime) -> Optional[CompanyMetrics]:
        outcome = await self.coordinator.collect(company_name)
        if outcome is None:
            logger.info("Collection run superseded by a newer request", company_name=company_name)
            return None
        self._badges[company_name.lower()] = badge_for(outcome.signals.crisis_verification)
        return outcome.metrics

    def verification_badge(self, company_name: str) -> VerificationBadge:
        return self._badges.pop(company_name.lower(), VerificationBadge())


class SyntheticMetricsSource(MetricsSource):
    """Deterministic company-seeded synthesis"""

    kind = DataSourceKind.SYNTHETIC

    async def load(self, company_name: str, now: datetime) -> Optional[CompanyMetrics]:
        return synthesize_company_metrics(company_name, now)


class DashboardOrchestrator:
    """
    Main entry point for dashboard metrics

    The first source whose result carries signal and passes validation wins.
    When none does, the last validation failure is raised as MetricsUnavailableError.
    """

    def __init__(self, sources: List[MetricsSource], cache_ttl: int = 600, cache_size: int = 128) -> None:
        self.sources = sources
        # company key -> (metrics, data source, verification badge)
        self.cache: TTLCache = TTLCache(maxsize=cache_size, ttl=cache_ttl)

        # Orchestrator metrics
        self.execution_stats = {
            "total_requests": 0,
            "collected_results": 0,
            "synthetic_results": 0,
            "failed_requests": 0,
        }

    async def get_company_metrics(self, company_name: str, now: Optional[datetime] = None,
                                  use_cache: bool = False) -> Tuple[CompanyMetrics, DataSourceKind, VerificationBadge]:
        company_name = require_valid_company_name(company_name)
        cache_key = company_name.lower()
        if use_cache and cache_key in self.cache:
            return self.cache[cache_key]

        now = now or utc_now()
        start_time = time.time()
        self.execution_stats["total_requests"] += 1
        trace_id = f"metrics_{cache_key}_{int(start_time)}"
        structured_logger.start_trace(trace_id, "company_metrics", company_name=company_name)

        last_validation: Optional[ValidationResult] = None
        for source in self.sources:
            source_name = source.kind.value
            step_start = time.time()
            try:
                metrics = await source.load(company_name, now)
            except Exception as e:
                logger.warning("Metrics source failed", company_name=company_name,
                               data_source=source_name, error=str(e))
                structured_logger.add_trace_step(trace_id, source_name, "failed",
                                                 time.time() - step_start, error=str(e))
                metrics_collector.record_fallback(source_name, "error")
                continue

            if metrics is None or not has_signal(metrics):
                logger.info("Metrics source produced no signal", company_name=company_name, data_source=source_name)
                structured_logger.add_trace_step(trace_id, source_name, "failed",
                                                 time.time() - step_start, reason="no_signal")
                metrics_collector.record_fallback(source_name, "no_signal")
                continue

            validation = validate_company_metrics(metrics)
            metrics_collector.record_validation(source_name, validation.is_valid)
            if not validation.is_valid:
                last_validation = validation
                logger.warning("Metrics failed validation", company_name=company_name,
                               data_source=source_name, errors=validation.errors[:5],
                               error_count=len(validation.errors))
                structured_logger.add_trace_step(trace_id, source_name, "failed",
                                                 time.time() - step_start, reason="invalid")
                metrics_collector.record_fallback(source_name, "invalid")
                continue

            structured_logger.add_trace_step(trace_id, source_name, "success", time.time() - step_start)
            result = (metrics.model_copy(update={"validation": validation}), source.kind,
                      source.verification_badge(company_name))
            self.cache[cache_key] = result
            self.execution_stats[f"{source_name}_results"] += 1
            structured_logger.end_trace(trace_id, "success", data_source=source_name,
                                        warnings=len(validation.warnings))
            return result

        self.execution_stats["failed_requests"] += 1
        validation = last_validation or ValidationResult(
            is_valid=False, errors=['No metrics source produced data'])
        structured_logger.end_trace(trace_id, "failed", error_count=len(validation.errors))
        raise MetricsUnavailableError(company_name, validation)

    async def build_dashboard(self, company_name: str, period: Union[Period, str] = Period.LAST_30_DAYS,
                              now: Optional[datetime] = None, collect: bool = True) -> DashboardView:
        """Validated metrics projected onto one period; collect=False reuses a cached result"""
        now = now or utc_now()
        metrics, data_source, badge = await self.get_company_metrics(company_name, now, use_cache=not collect)
        date_range, range_metrics, projection = build_range_view(metrics, period, now)

        logger.info("Dashboard view built", company_name=company_name,
                    period=date_range.period.value, data_source=data_source.value,
                    data_points=range_metrics.data_points)

        return DashboardView(
            company_name=company_name.strip(),
            period=date_range.period,
            date_range=date_range,
            range_metrics=range_metrics,
            metrics=projection,
            data_source=data_source,
            verification=badge,
            generated_at=now,
        )


__all__ = [
    'MetricsUnavailableError', 'MetricsSource', 'CollectedMetricsSource',
    'SyntheticMetricsSource', 'DashboardOrchestrator',
]
