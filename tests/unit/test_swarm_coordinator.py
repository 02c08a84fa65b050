"""
Unit tests for the swarm coordinator.
Covers failure isolation, stale-epoch updates, timeouts and snapshot consistency.
"""
import asyncio

import pytest

from models.schemas import AgentStatus, AgentType, ForumPostRecord, SwarmStatus
from tools.metrics_validator import InvalidCompanyNameError
from tools.signal_sources import PUBLISHER_FEEDS, NullSignalSource
from agents.collection_agents import CollectionAgent, CrisisValidatorAgent, CrisisVerifierAgent
from agents.swarm_coordinator import SwarmCoordinator, SwarmNotInitializedError
from fakes import NOW, FakeSignalSource, make_article

POST = ForumPostRecord(id="p1", title="Acme Corp outage", score=5, created_at=NOW)


class StaticAgent(CollectionAgent):
    """Returns a canned result, optionally after a gate opens or a delay"""

    agent_type = AgentType.PLATFORM

    def __init__(self, agent_id, result=None, signal_field="forum_posts", error=None, gate=None, delay=0.0):
        self.agent_id = agent_id
        self.name = agent_id
        self.signal_field = signal_field
        self.result = result if result is not None else []
        self.error = error
        self.gate = gate
        self.delay = delay

    async def execute(self, context):
        context.report(self.agent_id, 50)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


def coordinator_for(agent_config, agents=None, source=None):
    factory = (lambda: list(agents)) if agents is not None else None
    kwargs = {"roster_factory": factory} if factory else {}
    return SwarmCoordinator(source or NullSignalSource(), agent_config, now_provider=lambda: NOW, **kwargs)


class TestInitialization:

    def test_idle_roster(self, agent_config):
        coordinator = coordinator_for(agent_config)

        swarm = coordinator.initialize_swarm("Acme Corp")

        assert swarm.company_name == "Acme Corp"
        assert swarm.status == SwarmStatus.INITIALIZING
        assert swarm.epoch == 1
        assert len(swarm.agents) == 12
        assert all(agent.status == AgentStatus.IDLE and agent.progress == 0 for agent in swarm.agents)
        assert swarm.overall_progress == 0

    def test_invalid_company_name(self, agent_config):
        with pytest.raises(InvalidCompanyNameError):
            coordinator_for(agent_config).initialize_swarm("<script>")

    @pytest.mark.asyncio
    async def test_start_requires_initialization(self, agent_config):
        with pytest.raises(SwarmNotInitializedError):
            await coordinator_for(agent_config).start_collection()

    def test_reinitialize_bumps_epoch(self, agent_config):
        coordinator = coordinator_for(agent_config)
        coordinator.initialize_swarm("Acme Corp")
        assert coordinator.initialize_swarm("Beta Corp").epoch == 2


class TestFullRoster:

    @pytest.mark.asyncio
    async def test_offline_run_completes(self, agent_config):
        coordinator = coordinator_for(agent_config)
        snapshots = []
        coordinator.subscribe(snapshots.append)
        coordinator.initialize_swarm("Acme Corp")

        swarm = await coordinator.start_collection()

        assert swarm.status == SwarmStatus.COMPLETED
        assert swarm.overall_progress == 100
        assert all(agent.status == AgentStatus.COMPLETED for agent in swarm.agents)
        assert coordinator.get_collected_metrics() is not None
        assert coordinator.get_collection_metrics().data_quality == 1.0
        assert coordinator.execution_stats["completed_runs"] == 1

        for snapshot in snapshots:
            mean = sum(agent.progress for agent in snapshot.agents) / len(snapshot.agents)
            assert snapshot.overall_progress == pytest.approx(mean)

    @pytest.mark.asyncio
    async def test_verifier_reuses_validator_result(self, agent_config):
        breach = make_article("Kaseya ransomware breach triggers federal investigation",
                              "Reuters reports a cybersecurity investigation into MSP software", days_ago=10)
        coverage = make_article("Kaseya ransomware breach under investigation", days_ago=9)
        source = FakeSignalSource(news=[breach], feeds={
            PUBLISHER_FEEDS[0].feed_url: [coverage],
            PUBLISHER_FEEDS[1].feed_url: [coverage],
        })
        coordinator = coordinator_for(agent_config, [CrisisValidatorAgent(), CrisisVerifierAgent()], source)
        coordinator.initialize_swarm("Kaseya")

        swarm = await coordinator.start_collection()

        assert swarm.status == SwarmStatus.COMPLETED
        assert len(source.news_queries) == 8
        verification = coordinator.get_collected_signals().crisis_verification
        assert verification.is_verified
        assert verification.confidence == pytest.approx(0.945)


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_agent_failure_is_isolated(self, agent_config):
        coordinator = coordinator_for(agent_config, [
            StaticAgent("reddit-collector", result=[POST]),
            StaticAgent("news-collector", signal_field="news_articles", error=RuntimeError("boom")),
        ])
        coordinator.initialize_swarm("Acme Corp")

        swarm = await coordinator.start_collection()

        assert swarm.status == SwarmStatus.COMPLETED
        reddit, news = swarm.agents
        assert reddit.status == AgentStatus.COMPLETED
        assert reddit.data_points == 1
        assert news.status == AgentStatus.ERROR
        assert news.errors == ["boom"]
        assert coordinator.get_collected_signals().forum_posts == [POST]
        assert coordinator.get_collection_metrics().data_quality == 0.5

    @pytest.mark.asyncio
    async def test_all_agents_failing(self, agent_config):
        coordinator = coordinator_for(agent_config, [
            StaticAgent("a", error=RuntimeError("down")),
            StaticAgent("b", error=ValueError("bad")),
        ])
        coordinator.initialize_swarm("Acme Corp")

        swarm = await coordinator.start_collection()

        assert swarm.status == SwarmStatus.ERROR
        assert coordinator.get_collection_metrics() is None
        assert coordinator.execution_stats["failed_runs"] == 1

    @pytest.mark.asyncio
    async def test_timeout(self, agent_config):
        agent_config["execution_timeout"] = 0.05
        coordinator = coordinator_for(agent_config, [StaticAgent("slow", delay=1.0)])
        coordinator.initialize_swarm("Acme Corp")

        swarm = await coordinator.start_collection()

        assert swarm.agents[0].status == AgentStatus.ERROR
        assert swarm.agents[0].errors == ["TimeoutError"]

    @pytest.mark.asyncio
    async def test_superseded_run_is_discarded(self, agent_config):
        gate = asyncio.Event()
        coordinator = coordinator_for(agent_config, [StaticAgent("reddit-collector", result=[POST], gate=gate)])
        coordinator.initialize_swarm("Acme Corp")

        run = asyncio.create_task(coordinator.start_collection())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        coordinator.initialize_swarm("Beta Corp")
        gate.set()
        swarm = await run

        assert swarm.company_name == "Beta Corp"
        assert swarm.status == SwarmStatus.INITIALIZING
        assert swarm.agents[0].status == AgentStatus.IDLE
        assert coordinator.get_collected_signals().forum_posts == []
        assert coordinator.execution_stats["superseded_runs"] == 1

    @pytest.mark.asyncio
    async def test_collect_returns_only_its_own_run(self, agent_config):
        gate = asyncio.Event()
        coordinator = coordinator_for(agent_config, [StaticAgent("reddit-collector", result=[POST], gate=gate)])

        first = asyncio.create_task(coordinator.collect("Acme Corp"))
        await asyncio.sleep(0)
        second = asyncio.create_task(coordinator.collect("Beta Corp"))
        await asyncio.sleep(0)
        gate.set()

        assert await first is None
        outcome = await second
        assert outcome.company_name == "Beta Corp"
        assert outcome.epoch == 2
        assert outcome.status == SwarmStatus.COMPLETED
        assert outcome.signals.forum_posts == [POST]
        assert outcome.metrics is not None
        assert outcome.collection_metrics.data_quality == 1.0


class TestSnapshots:

    @pytest.mark.asyncio
    async def test_agent_progress_never_decreases(self, agent_config):
        coordinator = coordinator_for(agent_config, [StaticAgent("a"), StaticAgent("b", delay=0.01)])
        seen = {}
        regressions = []

        def watch(snapshot):
            for agent in snapshot.agents:
                if agent.progress < seen.get(agent.id, 0):
                    regressions.append(agent.id)
                seen[agent.id] = agent.progress

        coordinator.subscribe(watch)
        coordinator.initialize_swarm("Acme Corp")
        await coordinator.start_collection()

        assert regressions == []
        assert seen == {"a": 100.0, "b": 100.0}

    def test_unsubscribe(self, agent_config):
        coordinator = coordinator_for(agent_config, [StaticAgent("a")])
        snapshots = []
        unsubscribe = coordinator.subscribe(snapshots.append)
        coordinator.initialize_swarm("Acme Corp")
        unsubscribe()
        coordinator.initialize_swarm("Beta Corp")
        assert [s.company_name for s in snapshots] == ["Acme Corp"]

    def test_snapshots_are_copies(self, agent_config):
        coordinator = coordinator_for(agent_config, [StaticAgent("a")])
        snapshot = coordinator.initialize_swarm("Acme Corp")
        snapshot.agents[0].progress = 99.0
        assert coordinator.get_swarm().agents[0].progress == 0

    def test_failing_subscriber_does_not_break_others(self, agent_config):
        coordinator = coordinator_for(agent_config, [StaticAgent("a")])
        snapshots = []

        def broken(snapshot):
            raise RuntimeError("subscriber down")

        coordinator.subscribe(broken)
        coordinator.subscribe(snapshots.append)
        coordinator.initialize_swarm("Acme Corp")
        assert len(snapshots) == 1
