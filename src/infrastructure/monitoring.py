"""
Monitoring, Logging, and Observability Infrastructure
Structured logging, Prometheus metrics and health checks for the agent swarm
and the external signal sources it depends on
"""

import time
import asyncio
from typing import Dict, Any, Optional, Callable, Awaitable
from datetime import datetime, timezone
import structlog
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import logging
import logging.config

from .config import settings, get_monitoring_config, get_logging_config

# Global logger
logger = structlog.get_logger()

# Prometheus metrics registry
metrics_registry = CollectorRegistry()

# Core application metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=metrics_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint'],
    registry=metrics_registry
)

# Agent execution metrics
agent_executions_total = Counter(
    'agent_executions_total',
    'Total collection agent executions',
    ['agent_id', 'status'],
    registry=metrics_registry
)

agent_execution_duration_seconds = Histogram(
    'agent_execution_duration_seconds',
    'Collection agent execution duration',
    ['agent_id'],
    registry=metrics_registry
)

# Swarm metrics
swarm_runs_total = Counter(
    'swarm_runs_total',
    'Total agent swarm collection runs',
    ['status'],
    registry=metrics_registry
)

swarm_run_duration_seconds = Histogram(
    'swarm_run_duration_seconds',
    'Agent swarm collection run duration',
    registry=metrics_registry
)

swarm_progress_gauge = Gauge(
    'swarm_overall_progress',
    'Overall progress of the current swarm run',
    registry=metrics_registry
)

# External signal source metrics
signal_requests_total = Counter(
    'signal_requests_total',
    'Total external signal source requests',
    ['source', 'operation', 'status'],
    registry=metrics_registry
)

signal_request_duration_seconds = Histogram(
    'signal_request_duration_seconds',
    'External signal source request duration',
    ['source', 'operation'],
    registry=metrics_registry
)

# Metrics pipeline
metric_validations_total = Counter(
    'metric_validations_total',
    'Company metrics validations',
    ['data_source', 'result'],
    registry=metrics_registry
)

metrics_fallbacks_total = Counter(
    'metrics_fallbacks_total',
    'Fallbacks from one metrics source to the next',
    ['from_source', 'reason'],
    registry=metrics_registry
)

crisis_verifications_total = Counter(
    'crisis_verifications_total',
    'Crisis verification outcomes',
    ['result'],
    registry=metrics_registry
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricsCollector:
    """Centralized metrics collection and reporting"""

    def __init__(self):
        self.start_time = time.time()
        self.request_count = 0
        self.agent_executions = {}
        self.signal_requests = {}

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics"""
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        http_request_duration_seconds.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

        self.request_count += 1

    def record_agent_execution(self, agent_id: str, status: str, duration: float):
        """Record agent execution metrics"""
        agent_executions_total.labels(
            agent_id=agent_id,
            status=status
        ).inc()

        agent_execution_duration_seconds.labels(
            agent_id=agent_id
        ).observe(duration)

        # Track agent performance
        if agent_id not in self.agent_executions:
            self.agent_executions[agent_id] = {
                "total": 0, "successful": 0, "failed": 0, "avg_duration": 0.0
            }

        stats = self.agent_executions[agent_id]
        stats["total"] += 1
        if status == "success":
            stats["successful"] += 1
        else:
            stats["failed"] += 1

        # Update average duration
        stats["avg_duration"] = (
            (stats["avg_duration"] * (stats["total"] - 1) + duration) / stats["total"]
        )

    def record_swarm_run(self, status: str, duration: float):
        """Record a finished swarm collection run"""
        swarm_runs_total.labels(status=status).inc()
        swarm_run_duration_seconds.observe(duration)

    def update_swarm_progress(self, progress: float):
        swarm_progress_gauge.set(progress)

    def record_signal_request(self, source: str, operation: str,
                              status: str, duration: float):
        """Record external signal source request metrics"""
        signal_requests_total.labels(
            source=source,
            operation=operation,
            status=status
        ).inc()

        signal_request_duration_seconds.labels(
            source=source,
            operation=operation
        ).observe(duration)

        key = f"{source}.{operation}"
        stats = self.signal_requests.setdefault(key, {"total": 0, "failed": 0})
        stats["total"] += 1
        if status != "success":
            stats["failed"] += 1

    def record_validation(self, data_source: str, is_valid: bool):
        metric_validations_total.labels(
            data_source=data_source,
            result="valid" if is_valid else "invalid"
        ).inc()

    def record_fallback(self, from_source: str, reason: str):
        metrics_fallbacks_total.labels(from_source=from_source, reason=reason).inc()

    def record_crisis_verification(self, is_verified: bool):
        crisis_verifications_total.labels(
            result="verified" if is_verified else "unverified"
        ).inc()

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get comprehensive metrics summary"""
        uptime = time.time() - self.start_time

        return {
            "uptime_seconds": uptime,
            "total_requests": self.request_count,
            "agent_executions": self.agent_executions,
            "signal_requests": self.signal_requests,
            "timestamp": _utcnow().isoformat()
        }


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logging with context management and correlation tracking"""

    def __init__(self):
        self.logger = structlog.get_logger()
        self.setup_logging()
        self.active_traces = {}  # Track active operation traces

    def setup_logging(self):
        """Configure structured logging"""
        # Configure standard logging
        logging_config = get_logging_config()
        logging.config.dictConfig(logging_config)

        # Configure structlog
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.dev.ConsoleRenderer() if settings.LOG_FORMAT == "text" else structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(
                getattr(logging, settings.LOG_LEVEL.upper())
            ),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )

    def log_request(self, method: str, path: str, status_code: int, duration: float):
        """Log HTTP request with structured data"""
        self.logger.info(
            "HTTP request completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration * 1000
        )

    def log_agent_execution(self, agent_id: str, company_name: str, status: str,
                            duration: float, data_points: int = 0,
                            error: Optional[str] = None):
        """Log agent execution with context"""
        log_data = {
            "agent_id": agent_id,
            "company_name": company_name,
            "status": status,
            "data_points": data_points,
            "duration_ms": duration * 1000
        }

        if error:
            log_data["error"] = error

        if status == "success":
            self.logger.info("Agent execution completed", **log_data)
        else:
            self.logger.error("Agent execution failed", **log_data)

    def start_trace(self, trace_id: str, operation_type: str, **context) -> None:
        """Start a new operation trace with correlation ID"""
        self.active_traces[trace_id] = {
            "operation_type": operation_type,
            "start_time": _utcnow(),
            "context": context,
            "steps": []
        }

        self.logger.info(
            "Operation trace started",
            trace_id=trace_id,
            operation_type=operation_type,
            **context
        )

    def add_trace_step(self, trace_id: str, step_name: str, step_status: str,
                       step_duration: Optional[float] = None, **step_data) -> None:
        """Add a step to an existing trace"""
        if trace_id not in self.active_traces:
            return

        step_info = {
            "step_name": step_name,
            "step_status": step_status,
            "timestamp": _utcnow().isoformat(),
            **step_data
        }

        if step_duration is not None:
            step_info["duration_ms"] = step_duration * 1000

        self.active_traces[trace_id]["steps"].append(step_info)

        self.logger.debug(
            "Trace step completed",
            trace_id=trace_id,
            step_name=step_name,
            step_status=step_status,
            **step_data
        )

    def end_trace(self, trace_id: str, final_status: str, **final_data) -> Dict[str, Any]:
        """End an operation trace and return trace summary"""
        if trace_id not in self.active_traces:
            self.logger.warning("Attempted to end non-existent trace", trace_id=trace_id)
            return {}

        trace_data = self.active_traces.pop(trace_id)
        end_time = _utcnow()
        total_duration = (end_time - trace_data["start_time"]).total_seconds()

        trace_summary = {
            "trace_id": trace_id,
            "operation_type": trace_data["operation_type"],
            "total_duration_seconds": total_duration,
            "start_time": trace_data["start_time"].isoformat(),
            "end_time": end_time.isoformat(),
            "final_status": final_status,
            "total_steps": len(trace_data["steps"]),
            "successful_steps": len([s for s in trace_data["steps"] if s.get("step_status") == "success"]),
            "failed_steps": len([s for s in trace_data["steps"] if s.get("step_status") == "failed"]),
            "context": trace_data["context"],
            **final_data
        }

        if final_status == "success":
            self.logger.info("Operation trace completed successfully", **trace_summary)
        else:
            self.logger.error("Operation trace completed with errors", **trace_summary)

        return trace_summary

    def log_workflow_phase(self, trace_id: str, phase_name: str, phase_status: str,
                           phase_duration: float, company_name: str,
                           error_details: Optional[str] = None) -> None:
        """Log major workflow phase completion"""
        log_data = {
            "trace_id": trace_id,
            "workflow_phase": phase_name,
            "phase_status": phase_status,
            "duration_ms": phase_duration * 1000,
            "company_name": company_name
        }

        if error_details:
            log_data["error_details"] = error_details

        self.add_trace_step(
            trace_id, f"workflow_phase_{phase_name}", phase_status,
            phase_duration, company_name=company_name
        )

        if phase_status == "success":
            self.logger.info("Workflow phase completed", **log_data)
        else:
            self.logger.error("Workflow phase failed", **log_data)

    def get_active_traces(self) -> Dict[str, Any]:
        """Get summary of all active traces"""
        current_time = _utcnow()
        trace_summaries = {}

        for trace_id, trace_data in self.active_traces.items():
            elapsed_seconds = (current_time - trace_data["start_time"]).total_seconds()
            trace_summaries[trace_id] = {
                "operation_type": trace_data["operation_type"],
                "elapsed_seconds": elapsed_seconds,
                "steps_completed": len(trace_data["steps"]),
                "context": trace_data["context"],
                "is_long_running": elapsed_seconds > settings.AGENT_EXECUTION_TIMEOUT
            }

        return trace_summaries


# Global structured logger instance
structured_logger = StructuredLogger()

HealthCheckFunc = Callable[[], Awaitable[bool]]


class HealthChecker:
    """System health monitoring"""

    def __init__(self, default_timeout: Optional[float] = None):
        self.health_checks = {}
        self.last_check_time = None
        self.default_timeout = default_timeout or get_monitoring_config()["health_check_timeout"]

    def register_health_check(self, name: str, check_func: HealthCheckFunc,
                              timeout: Optional[float] = None):
        """Register an async health check function"""
        self.health_checks[name] = {
            "check_func": check_func,
            "timeout": timeout or self.default_timeout,
        }

    async def run_health_checks(self) -> Dict[str, Any]:
        """Run all registered health checks"""
        results = {}
        overall_healthy = True

        for name, check_data in self.health_checks.items():
            try:
                # Run health check with timeout
                start_time = time.time()
                result = await asyncio.wait_for(
                    check_data["check_func"](),
                    timeout=check_data["timeout"]
                )

                duration = time.time() - start_time

                results[name] = {
                    "status": "healthy" if result else "unhealthy",
                    "duration_seconds": duration,
                    "timestamp": _utcnow().isoformat()
                }

                if not result:
                    overall_healthy = False

            except asyncio.TimeoutError:
                results[name] = {
                    "status": "timeout",
                    "duration_seconds": check_data["timeout"],
                    "timestamp": _utcnow().isoformat(),
                    "error": "Health check timed out"
                }
                overall_healthy = False

            except Exception as e:
                results[name] = {
                    "status": "error",
                    "timestamp": _utcnow().isoformat(),
                    "error": str(e)
                }
                overall_healthy = False

        self.last_check_time = _utcnow()

        return {
            "overall_status": "healthy" if overall_healthy else "unhealthy",
            "checks": results,
            "timestamp": self.last_check_time.isoformat()
        }

    def get_health_summary(self) -> Dict[str, Any]:
        """Get health check summary"""
        return {
            "total_checks": len(self.health_checks),
            "last_check_time": self.last_check_time.isoformat() if self.last_check_time else None,
        }


# Global health checker instance
health_checker = HealthChecker()


def setup_monitoring(checks: Optional[Dict[str, HealthCheckFunc]] = None):
    """Register health checks for the composed services"""
    logger.info("Setting up monitoring infrastructure")

    for name, check_func in (checks or {}).items():
        health_checker.register_health_check(name, check_func)

    logger.info("Monitoring infrastructure initialized",
                health_checks=list(health_checker.health_checks))


def get_prometheus_metrics() -> str:
    """Get Prometheus metrics in text format"""
    return generate_latest(metrics_registry).decode('utf-8')


def get_system_stats() -> Dict[str, Any]:
    """Get comprehensive system statistics"""
    return {
        "metrics": metrics_collector.get_metrics_summary(),
        "active_traces": structured_logger.get_active_traces(),
        "health": health_checker.get_health_summary(),
        "timestamp": _utcnow().isoformat()
    }


# Export monitoring components
__all__ = [
    'metrics_registry',
    'metrics_collector',
    'structured_logger',
    'health_checker',
    'HealthChecker',
    'setup_monitoring',
    'get_prometheus_metrics',
    'get_system_stats'
]
