"""
Unit tests for the individual collection agents, run directly against a fake signal source.
"""
import pytest

from models.schemas import CrisisVerificationResult, Priority, ThreatOpportunityType
from tools.signal_sources import (
    VERIFIED_NEWS_FEEDS, CompositeSignalSource, PublisherFeed, SyntheticSignalSource
)
from agents.collection_agents import (
    CollectionContext, CompetitorCollectorAgent, CrisisVerifierAgent, StakeholderCollectorAgent,
    ThreatCollectorAgent, VerifiedNewsCollectorAgent, build_roster, competitors_for
)
from fakes import NOW, FakeSignalSource, make_article

ALPHA = PublisherFeed("Alpha Wire", "https://alpha.test/rss", "https://alpha.test", 0.9)
BETA = PublisherFeed("Beta Times", "https://beta.test/rss", "https://beta.test", 0.8)

KASEYA_LAWSUIT = make_article("Kaseya lawsuit filed by customers", "Kaseya faces lawsuit")
WEATHER = make_article("Weather update", "Sunny all week")
KASEYA_RISK = make_article(
    "Kaseya cybersecurity lawsuit from MSP backup customers",
    "SEC reviews Kaseya remote monitoring after cybersecurity breaches",
)


def context_for(source, **kwargs) -> CollectionContext:
    return CollectionContext("Kaseya", source, NOW, rate_limit_delay=0, **kwargs)


class TestRoster:

    def test_twelve_unique_agents(self):
        roster = build_roster()
        ids = [agent.agent_id for agent in roster]
        assert len(ids) == 12
        assert len(set(ids)) == 12
        assert all(agent.signal_field for agent in roster)

    def test_competitors(self):
        assert competitors_for("Kaseya")[:2] == ['ConnectWise', 'Datto']
        assert competitors_for("Microsoft Corp") == ["Google", "Amazon", "Apple", "Oracle", "Salesforce"]
        assert competitors_for("Acme Corp") == []


class TestCollectionContext:

    @pytest.mark.asyncio
    async def test_published_results_are_shared(self):
        context = context_for(FakeSignalSource())
        context.register("crisis-validator")
        context.publish("crisis-validator", "result")
        assert await context.wait_for("crisis-validator") == "result"

    @pytest.mark.asyncio
    async def test_unknown_agent_yields_none(self):
        assert await context_for(FakeSignalSource()).wait_for("missing") is None

    def test_reports_progress(self):
        reports = []
        context = CollectionContext("Kaseya", FakeSignalSource(), NOW,
                                    reporter=lambda agent_id, progress: reports.append((agent_id, progress)))
        context.report("news-collector", 40)
        assert reports == [("news-collector", 40)]


class TestVerifiedNewsCollector:

    @pytest.mark.asyncio
    async def test_classifies_relevant_feed_items(self):
        source = FakeSignalSource(feeds={ALPHA.feed_url: [KASEYA_LAWSUIT, WEATHER]})
        articles = await VerifiedNewsCollectorAgent([ALPHA]).execute(context_for(source))

        assert len(articles) == 1
        article = articles[0]
        assert article.id == "alpha-wire-0"
        assert article.source_name == "Alpha Wire"
        assert article.category == ThreatOpportunityType.THREAT
        assert article.priority == Priority.CRITICAL
        assert article.impact == -60
        assert article.confidence == 0.9
        assert article.verified

    @pytest.mark.asyncio
    async def test_one_failed_feed_is_skipped(self):
        source = FakeSignalSource(feeds={BETA.feed_url: [KASEYA_LAWSUIT]}, failing_feeds=[ALPHA.feed_url])
        articles = await VerifiedNewsCollectorAgent([ALPHA, BETA]).execute(context_for(source))
        assert [a.id for a in articles] == ["beta-times-0"]

    @pytest.mark.asyncio
    async def test_all_feeds_failing_uses_unverified_fallback(self):
        source = FakeSignalSource(failing_feeds=[ALPHA.feed_url, BETA.feed_url])
        articles = await VerifiedNewsCollectorAgent([ALPHA, BETA]).execute(context_for(source))
        assert [a.id for a in articles] == ["fallback-threat-1", "fallback-opportunity-1"]
        assert not any(a.verified for a in articles)

    @pytest.mark.asyncio
    async def test_feed_outage_behind_default_composite_uses_fallback(self):
        feeds = FakeSignalSource(failing_feeds=[feed.feed_url for feed in VERIFIED_NEWS_FEEDS])
        source = CompositeSignalSource([feeds, SyntheticSignalSource(now_provider=lambda: NOW)])

        articles = await VerifiedNewsCollectorAgent().execute(context_for(source))

        assert [a.id for a in articles] == ["fallback-threat-1", "fallback-opportunity-1"]
        assert len(feeds.feed_requests) == len(VERIFIED_NEWS_FEEDS)

    @pytest.mark.asyncio
    async def test_undated_entries_take_the_run_clock(self):
        undated = make_article("Kaseya lawsuit filed by customers", "Kaseya faces lawsuit", days_ago=-0.01)
        undated = undated.model_copy(update={"dated": False})
        source = FakeSignalSource(feeds={ALPHA.feed_url: [undated]})

        articles = await VerifiedNewsCollectorAgent([ALPHA]).execute(context_for(source))

        assert articles[0].published_at == NOW


class TestSearchCollectors:

    @pytest.mark.asyncio
    async def test_stakeholder_segments_without_results_are_dropped(self):
        source = FakeSignalSource(news=lambda query: [KASEYA_LAWSUIT] if "investors" in query else [])
        agent = StakeholderCollectorAgent()

        result = await agent.execute(context_for(source))

        assert list(result) == ["Investors"]
        assert agent.count_data_points(result) == 1
        assert len(source.news_queries) == 4

    @pytest.mark.asyncio
    async def test_competitor_mentions(self):
        source = FakeSignalSource(news=lambda query: [KASEYA_LAWSUIT] if query == '"Datto"' else [])
        mentions = await CompetitorCollectorAgent().execute(context_for(source))
        assert [(m.company, m.mentions) for m in mentions] == [("Datto", 1)]
        assert mentions[0].timestamp == NOW

    @pytest.mark.asyncio
    async def test_threat_collector(self):
        source = FakeSignalSource(news=[KASEYA_RISK, WEATHER])

        items = await ThreatCollectorAgent().execute(context_for(source))

        assert len(source.news_queries) == 2
        # duplicates across queries collapse; off-topic items fail validation
        assert len(items) == 1
        item = items[0]
        assert item.id == "detected-threat-0"
        assert item.impact == -60
        assert item.priority == "critical"
        assert item.verified_url == KASEYA_RISK.url
        assert item.validation_score >= 50


class TestCrisisVerifier:

    @pytest.mark.asyncio
    async def test_disabled_verification(self):
        source = FakeSignalSource()
        result = await CrisisVerifierAgent().execute(context_for(source, verification_config={"enabled": False}))
        assert result == CrisisVerificationResult()
        assert source.news_queries == []
        assert source.feed_requests == []

    @pytest.mark.asyncio
    async def test_validates_itself_without_validator(self):
        source = FakeSignalSource()
        result = await CrisisVerifierAgent().execute(context_for(source))
        assert not result.is_verified
        assert len(source.news_queries) == 8
