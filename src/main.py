"""
FastAPI Crisis Sentiment Intelligence service
Company-scoped dashboard metrics, agent swarm progress and date-range views
"""

from fastapi import FastAPI, HTTPException, BackgroundTasks, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from typing import Any, Dict
from datetime import datetime, timezone
import time
import structlog

from models.schemas import (
    AgentSwarm, CollectionMetrics, DashboardView, ErrorView, MetricsRequest, Period,
    SwarmStartRequest
)
from agents.agent_orchestrator import (
    CollectedMetricsSource, DashboardOrchestrator, MetricsUnavailableError, SyntheticMetricsSource
)
from agents.swarm_coordinator import SwarmCoordinator
from tools.date_range import get_data_collection_status, get_date_range
from tools.metric_synthesizers import synthesize_company_metrics
from tools.metrics_validator import InvalidCompanyNameError, validate_company_metrics
from tools.signal_sources import ExternalSignalSource, create_signal_source
from infrastructure.config import (
    get_agent_config, get_feature_flags, get_security_config, get_signal_source_config, settings,
    validate_settings
)
from infrastructure.monitoring import (
    get_prometheus_metrics, get_system_stats, health_checker, metrics_collector, setup_monitoring,
    structured_logger
)

logger = structlog.get_logger()
app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

security_config = get_security_config()
app.add_middleware(
    CORSMiddleware,
    allow_origins=security_config["cors_origins"],
    allow_credentials=security_config["cors_allow_credentials"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ServiceContainer:
    """Composition root: every shared service is built here and nowhere else"""

    def __init__(self, signal_source: ExternalSignalSource) -> None:
        agent_config = get_agent_config()
        flags = get_feature_flags()

        self.signal_source = signal_source
        self.swarm_coordinator = SwarmCoordinator(signal_source, agent_config)

        sources = []
        if flags["external_signals"]:
            sources.append(CollectedMetricsSource(self.swarm_coordinator))
        if flags["synthetic_fallback"] or not sources:
            sources.append(SyntheticMetricsSource())

        self.orchestrator = DashboardOrchestrator(
            sources,
            cache_ttl=agent_config["metrics_cache_ttl"],
            cache_size=agent_config["metrics_cache_size"],
        )


def build_services() -> ServiceContainer:
    return ServiceContainer(create_signal_source(get_signal_source_config()))


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def error_response(status_code: int, message: str, errors=None, warnings=None) -> HTTPException:
    detail = ErrorView(message=message, errors=list(errors or []), warnings=list(warnings or []))
    return HTTPException(status_code=status_code, detail=detail.model_dump())


async def check_metrics_pipeline() -> bool:
    return validate_company_metrics(synthesize_company_metrics("Health Check")).is_valid


@app.on_event("startup")
async def on_startup():
    validate_settings()
    logger.info("startup", signal_source=get_signal_source_config()["source"])
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
    setup_monitoring({"metrics_pipeline": check_metrics_pipeline})


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("shutdown")


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    if get_feature_flags()["metrics"]:
        metrics_collector.record_http_request(request.method, request.url.path, response.status_code, duration)
    structured_logger.log_request(request.method, request.url.path, response.status_code, duration)
    return response


@app.post("/api/v1/metrics", response_model=DashboardView)
async def create_dashboard(
    request: MetricsRequest,
    services: ServiceContainer = Depends(get_services),
) -> DashboardView:
    """Collect (or synthesize) validated metrics for a company and project them onto a period."""
    try:
        return await services.orchestrator.build_dashboard(
            request.company_name, request.period, collect=request.collect)
    except InvalidCompanyNameError as e:
        raise error_response(400, "Invalid company name", e.errors)
    except MetricsUnavailableError as e:
        raise error_response(422, str(e), e.validation.errors, e.validation.warnings)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("create_dashboard_failed", company_name=request.company_name, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/companies/{company_name}/metrics", response_model=DashboardView)
async def get_dashboard(
    company_name: str,
    period: Period = Query(Period.LAST_30_DAYS),
    services: ServiceContainer = Depends(get_services),
) -> DashboardView:
    """Re-project the latest validated metrics onto another period without collecting again."""
    try:
        return await services.orchestrator.build_dashboard(company_name, period, collect=False)
    except InvalidCompanyNameError as e:
        raise error_response(400, "Invalid company name", e.errors)
    except MetricsUnavailableError as e:
        raise error_response(422, str(e), e.validation.errors, e.validation.warnings)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("get_dashboard_failed", company_name=company_name, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


async def run_swarm_collection(coordinator: SwarmCoordinator) -> None:
    """Background collection run; failures are logged, never raised"""
    try:
        await coordinator.start_collection()
    except Exception as e:
        logger.error("swarm_collection_failed", error=str(e), exc_info=True)


@app.post("/api/v1/swarm", response_model=AgentSwarm)
async def start_swarm(
    request: SwarmStartRequest,
    background_tasks: BackgroundTasks,
    services: ServiceContainer = Depends(get_services),
) -> AgentSwarm:
    """Initialize the swarm for a company and start collection in the background."""
    try:
        swarm = services.swarm_coordinator.initialize_swarm(request.company_name)
        background_tasks.add_task(run_swarm_collection, services.swarm_coordinator)
        return swarm
    except InvalidCompanyNameError as e:
        raise error_response(400, "Invalid company name", e.errors)
    except Exception as e:
        logger.error("start_swarm_failed", company_name=request.company_name, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/swarm", response_model=AgentSwarm)
async def get_swarm(services: ServiceContainer = Depends(get_services)) -> AgentSwarm:
    swarm = services.swarm_coordinator.get_swarm()
    if swarm is None:
        raise error_response(404, "No swarm has been initialized")
    return swarm


@app.get("/api/v1/swarm/collection-metrics", response_model=CollectionMetrics)
async def get_collection_metrics(services: ServiceContainer = Depends(get_services)) -> CollectionMetrics:
    collection_metrics = services.swarm_coordinator.get_collection_metrics()
    if collection_metrics is None:
        raise error_response(404, "Collection metrics are available once a swarm run has completed")
    return collection_metrics


@app.get("/api/v1/date-range")
async def get_period_range(period: Period = Query(Period.LAST_30_DAYS)) -> Dict[str, Any]:
    date_range = get_date_range(period)
    return {
        "date_range": date_range.model_dump(mode="json"),
        "collection_status": get_data_collection_status(date_range).model_dump(mode="json"),
    }


@app.get("/health")
async def health() -> Dict[str, Any]:
    try:
        report = await health_checker.run_health_checks()
        status = "ok" if report["overall_status"] == "healthy" else "degraded"
        return {"status": status, "checks": report["checks"],
                "timestamp": datetime.now(timezone.utc).isoformat()}
    except Exception as e:
        return {"status": "error", "detail": str(e)}


@app.get("/api/v1/system/stats")
async def system_stats(services: ServiceContainer = Depends(get_services)) -> Dict[str, Any]:
    stats = get_system_stats()
    stats["orchestrator"] = dict(services.orchestrator.execution_stats)
    stats["swarm"] = dict(services.swarm_coordinator.execution_stats)
    return stats


@app.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics() -> str:
    return get_prometheus_metrics()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, workers=settings.WORKERS)
