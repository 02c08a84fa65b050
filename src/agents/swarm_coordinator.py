"""
Agent Swarm Coordinator - Runs the twelve collection agents for one company
Owns the swarm state, pushes immutable snapshots to subscribers and aggregates
whatever was collected once every agent has settled
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta
import structlog

from models.schemas import (
    AgentStatus, AgentSwarm, CollectedSignals, CollectionMetrics, CollectionOutcome,
    CompanyMetrics, DataAgent, SwarmStatus
)
from agents.collection_agents import CollectionAgent, CollectionContext, build_roster
from agents.metrics_aggregator import aggregate_collected_signals, build_collection_metrics
from tools.date_range import DATA_START_DATE, utc_now
from tools.metrics_validator import require_valid_company_name
from tools.signal_sources import ExternalSignalSource
from infrastructure.config import get_agent_config
from infrastructure.monitoring import metrics_collector, structured_logger

logger = structlog.get_logger()

SwarmSubscriber = Callable[[AgentSwarm], None]


class SwarmNotInitializedError(RuntimeError):
    """Raised when collection is started before initialize_swarm()"""


class SwarmCoordinator:
    """
    Coordinates the collection agent swarm

    Every run carries an epoch token. Agent updates that arrive from a
    superseded epoch are dropped, so re-initializing never lets a stale
    run write into the current swarm.
    """

    def __init__(self, signal_source: ExternalSignalSource,
                 agent_config: Optional[Dict[str, Any]] = None,
                 roster_factory: Callable[[], List[CollectionAgent]] = build_roster,
                 now_provider: Optional[Callable[[], datetime]] = None) -> None:
        self.signal_source = signal_source
        self.agent_config = agent_config or get_agent_config()
        self.roster_factory = roster_factory
        self._now = now_provider or utc_now

        self.swarm: Optional[AgentSwarm] = None
        self.agents: List[CollectionAgent] = []
        self.signals = CollectedSignals()
        self.collected_metrics: Optional[CompanyMetrics] = None
        self.collection_metrics: Optional[CollectionMetrics] = None
        self._subscribers: List[SwarmSubscriber] = []
        self._epoch = 0

        # Coordinator metrics
        self.execution_stats = {
            "total_runs": 0,
            "completed_runs": 0,
            "failed_runs": 0,
            "superseded_runs": 0,
        }

    @property
    def estimated_duration(self) -> float:
        return float(self.agent_config.get("estimated_duration", 90))

    def initialize_swarm(self, company_name: str) -> AgentSwarm:
        """Reset all per-company state and build an idle roster"""
        company_name = require_valid_company_name(company_name)
        now = self._now()

        self._epoch += 1
        self.agents = self.roster_factory()
        self.signals = CollectedSignals()
        self.collected_metrics = None
        self.collection_metrics = None

        self.swarm = AgentSwarm(
            company_name=company_name,
            start_date=DATA_START_DATE,
            end_date=now,
            agents=[
                DataAgent(id=agent.agent_id, name=agent.name, type=agent.agent_type, last_update=now)
                for agent in self.agents
            ],
            estimated_completion=now + timedelta(seconds=self.estimated_duration),
            epoch=self._epoch,
        )

        logger.info("Agent swarm initialized",
                    company_name=company_name, agents=len(self.agents), epoch=self._epoch)
        self._notify()
        return self.get_swarm()

    def subscribe(self, callback: SwarmSubscriber) -> Callable[[], None]:
        """Register for snapshots; returns the unsubscribe function"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def get_swarm(self) -> Optional[AgentSwarm]:
        return self.swarm.model_copy(deep=True) if self.swarm else None

    def get_collected_metrics(self) -> Optional[CompanyMetrics]:
        return self.collected_metrics.model_copy(deep=True) if self.collected_metrics else None

    def get_collection_metrics(self) -> Optional[CollectionMetrics]:
        """Only available once a run has completed"""
        if not self.swarm or self.swarm.status != SwarmStatus.COMPLETED:
            return None
        return self.collection_metrics

    def get_collected_signals(self) -> CollectedSignals:
        return self.signals.model_copy(deep=True)

    async def start_collection(self) -> AgentSwarm:
        """Run every agent concurrently, then aggregate what they collected"""
        if self.swarm is None:
            raise SwarmNotInitializedError("initialize_swarm() must be called first")
        await self._run_collection()
        return self.get_swarm()

    async def collect(self, company_name: str) -> Optional[CollectionOutcome]:
        """
        Initialize and run a swarm for one company

        Returns this run's own outcome, or None when a later initialize_swarm()
        superseded it before the agents settled.
        """
        self.initialize_swarm(company_name)
        return await self._run_collection()

    async def _run_collection(self) -> Optional[CollectionOutcome]:
        start_time = time.time()
        epoch = self._epoch
        company_name = self.swarm.company_name
        trace_id = f"swarm_{company_name}_{epoch}_{int(start_time)}"
        self.execution_stats["total_runs"] += 1

        # Each run writes into its own signals; the coordinator only exposes the current epoch's
        signals = CollectedSignals()
        self.signals = signals

        structured_logger.start_trace(trace_id, "swarm_collection", company_name=company_name, epoch=epoch)
        self._set_status(epoch, SwarmStatus.COLLECTING)

        context = CollectionContext(
            company_name=company_name,
            signal_source=self.signal_source,
            now=self._now(),
            reporter=lambda agent_id, progress: self._update_agent(epoch, agent_id, progress=progress),
            rate_limit_delay=self.agent_config.get("rate_limit_delay", 1.0),
            verification_config={
                "minimum_sources": self.agent_config.get("minimum_sources", 2),
                "minimum_confidence": self.agent_config.get("minimum_confidence", 0.7),
                "window_days": self.agent_config.get("verification_window_days", 30),
                "enabled": self.agent_config.get("crisis_verification", True),
            },
        )
        for agent in self.agents:
            context.register(agent.agent_id)

        results = await self._execute_parallel_collection(self.agents, context, epoch, signals)

        if epoch != self._epoch:
            self.execution_stats["superseded_runs"] += 1
            structured_logger.end_trace(trace_id, "superseded", current_epoch=self._epoch)
            logger.info("Discarding superseded swarm run", company_name=company_name, epoch=epoch)
            return None

        failed = sum(1 for result in results if isinstance(result, Exception))
        status = self._aggregate(epoch, signals, context.now, trace_id)
        if failed and failed == len(results):
            status = SwarmStatus.ERROR

        duration = time.time() - start_time
        self._set_status(epoch, status)
        metrics_collector.record_swarm_run(status.value, duration)
        self.execution_stats["completed_runs" if status == SwarmStatus.COMPLETED else "failed_runs"] += 1

        structured_logger.end_trace(
            trace_id, "success" if status == SwarmStatus.COMPLETED else "failed",
            agents_failed=failed, total_data_points=self.swarm.total_data_points,
        )
        logger.info("Swarm collection finished",
                    company_name=company_name, status=status.value, agents_failed=failed,
                    total_data_points=self.swarm.total_data_points,
                    execution_time_ms=duration * 1000)
        return CollectionOutcome(
            company_name=company_name,
            epoch=epoch,
            status=status,
            signals=signals.model_copy(deep=True),
            metrics=self.get_collected_metrics(),
            collection_metrics=self.collection_metrics,
        )

    async def _execute_parallel_collection(self, agents: List[CollectionAgent], context: CollectionContext,
                                           epoch: int, signals: CollectedSignals) -> List[Any]:
        tasks = [
            asyncio.create_task(self._safe_agent_execution(agent, context, epoch, signals))
            for agent in agents
        ]
        return await asyncio.gather(*tasks, return_exceptions=True)

    async def _safe_agent_execution(self, agent: CollectionAgent, context: CollectionContext,
                                    epoch: int, signals: CollectedSignals) -> Any:
        """Run one agent; its failure is recorded on the agent and re-raised for gather"""
        start_time = time.time()
        self._update_agent(epoch, agent.agent_id, status=AgentStatus.COLLECTING,
                           progress=agent.initial_progress)
        timeout = self.agent_config.get("execution_timeout")

        try:
            result = await asyncio.wait_for(agent.execute(context), timeout=timeout)
        except Exception as e:
            duration = time.time() - start_time
            error = str(e) or type(e).__name__
            context.publish(agent.agent_id, None)
            metrics_collector.record_agent_execution(agent.agent_id, "failed", duration)
            structured_logger.log_agent_execution(agent.agent_id, context.company_name, "failed",
                                                  duration, error=error)
            self._update_agent(epoch, agent.agent_id, status=AgentStatus.ERROR, error=error)
            raise

        duration = time.time() - start_time
        data_points = agent.count_data_points(result)
        context.publish(agent.agent_id, result)
        metrics_collector.record_agent_execution(agent.agent_id, "success", duration)
        structured_logger.log_agent_execution(agent.agent_id, context.company_name, "success",
                                              duration, data_points=data_points)

        setattr(signals, agent.signal_field, result)
        self._update_agent(epoch, agent.agent_id, status=AgentStatus.COMPLETED,
                           progress=100.0, data_points=data_points)
        return result

    def _aggregate(self, epoch: int, signals: CollectedSignals, now: datetime, trace_id: str) -> SwarmStatus:
        self._set_status(epoch, SwarmStatus.PROCESSING)
        phase_start = time.time()
        try:
            self.collected_metrics = aggregate_collected_signals(signals, now)
            self.collection_metrics = build_collection_metrics(signals, self.swarm)
        except Exception as e:
            structured_logger.log_workflow_phase(trace_id, "aggregation", "failed",
                                                 time.time() - phase_start, self.swarm.company_name, str(e))
            logger.error("Swarm aggregation failed", company_name=self.swarm.company_name, error=str(e))
            return SwarmStatus.ERROR

        structured_logger.log_workflow_phase(trace_id, "aggregation", "success",
                                             time.time() - phase_start, self.swarm.company_name)
        return SwarmStatus.COMPLETED

    def _find_agent(self, agent_id: str) -> Optional[DataAgent]:
        return next((agent for agent in self.swarm.agents if agent.id == agent_id), None)

    def _update_agent(self, epoch: int, agent_id: str, status: Optional[AgentStatus] = None,
                      progress: Optional[float] = None, data_points: Optional[int] = None,
                      error: Optional[str] = None) -> None:
        if epoch != self._epoch or self.swarm is None:
            logger.debug("Dropping stale agent update", agent_id=agent_id, epoch=epoch, current_epoch=self._epoch)
            return

        agent = self._find_agent(agent_id)
        if agent is None:
            return
        if agent.is_terminal and status is None:
            return

        if status is not None:
            agent.status = status
        if progress is not None:
            agent.progress = min(100.0, max(agent.progress, progress))
        if data_points is not None:
            agent.data_points = data_points
        if error:
            agent.errors.append(error)
        agent.last_update = self._now()

        self._recompute_progress()
        self._notify()

    def _set_status(self, epoch: int, status: SwarmStatus) -> None:
        if epoch != self._epoch or self.swarm is None:
            return
        self.swarm.status = status
        self._notify()

    def _recompute_progress(self) -> None:
        agents = self.swarm.agents
        self.swarm.overall_progress = sum(agent.progress for agent in agents) / len(agents) if agents else 0.0
        self.swarm.total_data_points = sum(agent.data_points for agent in agents)

        remaining = (100 - self.swarm.overall_progress) / 100
        self.swarm.estimated_completion = self._now() + timedelta(seconds=remaining * self.estimated_duration)
        metrics_collector.update_swarm_progress(self.swarm.overall_progress)

    def _notify(self) -> None:
        """Push a deep-copied snapshot to every subscriber"""
        if self.swarm is None:
            return
        for callback in list(self._subscribers):
            try:
                callback(self.swarm.model_copy(deep=True))
            except Exception as e:
                logger.warning("Swarm subscriber failed", error=str(e))


__all__ = ['SwarmCoordinator', 'SwarmNotInitializedError', 'SwarmSubscriber']
