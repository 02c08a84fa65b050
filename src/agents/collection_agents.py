"""
Collection Agents
The twelve specialised data collectors run concurrently by the swarm coordinator
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime
import structlog

from models.schemas import (
    AgentType, CompetitorMentionRecord, Coordinates, CrisisValidationResult,
    CrisisVerificationResult, GeographicMentionRecord, NewsArticleRecord,
    Priority, ThreatOpportunity, VerifiedNewsArticle
)
from tools.signal_sources import (
    VERIFIED_NEWS_FEEDS, ExternalSignalSource, PublisherFeed, SignalSourceError
)
from tools.signal_scoring import article_text, competitor_sentiment, regional_sentiment
from tools.threat_intelligence import (
    assess_threat_opportunity, calculate_news_relevance, calculate_time_window,
    categorize_article, fallback_news_articles, generate_validated_threats_opportunities,
    validate_threat_opportunity
)
from tools.company_profiles import DYNAMIC_COMPETITORS, get_company_profile, normalize_company_key
from tools.company_context import round_half_up
from agents.crisis_validation_agent import CrisisValidationAgent
from agents.crisis_verification_agent import CrisisVerificationAgent

logger = structlog.get_logger()

ProgressReporter = Callable[[str, float], None]

FEED_ITEM_LIMIT = 20
FEED_ITEM_RELEVANCE = 0.2
VERIFIED_NEWS_RELEVANCE = 0.3
VERIFIED_NEWS_LIMIT = 10
VALIDATED_ITEM_COUNT = 8

KNOWN_COMPETITORS: Dict[str, List[str]] = {
    'kaseya': ['ConnectWise', 'Datto', 'SolarWinds MSP', 'Atera', 'NinjaRMM'],
    'microsoft': ['Apple', 'Google', 'Amazon', 'Oracle', 'IBM'],
    'apple': ['Microsoft', 'Google', 'Samsung', 'Amazon', 'Meta'],
    'google': ['Microsoft', 'Apple', 'Amazon', 'Meta', 'Oracle'],
}

# (region, country, lat, lng)
REGIONS: List[Tuple[str, str, float, float]] = [
    ('United States', 'United States', 39.8283, -98.5795),
    ('Europe', 'European Union', 54.5260, 15.2551),
    ('Asia', 'Asia Pacific', 34.0479, 100.6197),
    ('Canada', 'Canada', 56.1304, -106.3468),
    ('Australia', 'Australia', -25.2744, 133.7751),
    ('India', 'India', 20.5937, 78.9629),
]

# (segment, search keyword)
STAKEHOLDER_QUERIES: List[Tuple[str, str]] = [
    ('Customers', 'customers'),
    ('Investors', 'investors'),
    ('Employees', 'employees'),
    ('Regulators', 'regulators'),
]

THREAT_QUERY_TERMS = ['risk', 'opportunity']


def competitors_for(company_name: str) -> List[str]:
    """Known rivals; dynamic profiles carry placeholder names, which are never searched"""
    key = normalize_company_key(company_name)
    if key in KNOWN_COMPETITORS:
        return KNOWN_COMPETITORS[key]
    profile = get_company_profile(company_name)
    return [name for name in profile.competitors if name not in DYNAMIC_COMPETITORS]


def feed_slug(feed: PublisherFeed) -> str:
    return feed.name.lower().replace(' ', '-')


class CollectionContext:
    """Shared state for one swarm run"""

    def __init__(self, company_name: str, signal_source: ExternalSignalSource, now: datetime,
                 reporter: Optional[ProgressReporter] = None, rate_limit_delay: float = 1.0,
                 verification_config: Optional[Dict[str, Any]] = None) -> None:
        self.company_name = company_name
        self.signal_source = signal_source
        self.now = now
        self.rate_limit_delay = rate_limit_delay
        self.verification_config = verification_config or {}
        self._reporter = reporter
        self._results: Dict[str, asyncio.Future] = {}

    def report(self, agent_id: str, progress: float) -> None:
        if self._reporter:
            self._reporter(agent_id, progress)

    def register(self, agent_id: str) -> None:
        self._results[agent_id] = asyncio.get_running_loop().create_future()

    def publish(self, agent_id: str, result: Any) -> None:
        future = self._results.get(agent_id)
        if future is not None and not future.done():
            future.set_result(result)

    async def wait_for(self, agent_id: str) -> Any:
        """Result of another agent in this run, None if it failed or is not running"""
        future = self._results.get(agent_id)
        if future is None:
            return None
        return await future

    async def pause(self) -> None:
        if self.rate_limit_delay:
            await asyncio.sleep(self.rate_limit_delay)


class CollectionAgent:
    """Base collector; `signal_field` names the CollectedSignals field the result fills"""

    agent_id = ""
    name = ""
    agent_type = AgentType.SENTIMENT
    signal_field = ""
    initial_progress = 10.0

    async def execute(self, context: CollectionContext) -> Any:
        raise NotImplementedError

    def count_data_points(self, result: Any) -> int:
        return len(result)

    async def _search_each(self, context: CollectionContext, queries: List[Tuple[str, str]],
                           start: float, end: float) -> Dict[str, List[NewsArticleRecord]]:
        """Run labelled news searches one at a time; a failed search is logged and skipped"""
        found: Dict[str, List[NewsArticleRecord]] = {}
        for index, (label, query) in enumerate(queries):
            if index:
                await context.pause()
            try:
                found[label] = await context.signal_source.search_news(query)
            except SignalSourceError as e:
                logger.warning("Collector search failed", agent_id=self.agent_id, query=query, error=str(e))
            context.report(self.agent_id, start + (end - start) * (index + 1) / len(queries))
        return found


class RedditCollectorAgent(CollectionAgent):
    agent_id = "reddit-collector"
    name = "Reddit Social Intelligence Agent"
    agent_type = AgentType.PLATFORM
    signal_field = "forum_posts"
    initial_progress = 10.0

    async def execute(self, context: CollectionContext) -> list:
        return await context.signal_source.search_forum_posts(context.company_name)


class NewsCollectorAgent(CollectionAgent):
    agent_id = "news-collector"
    name = "Google News Analysis Agent"
    agent_type = AgentType.CRISIS
    signal_field = "news_articles"
    initial_progress = 15.0

    async def execute(self, context: CollectionContext) -> list:
        return await context.signal_source.search_news(f'"{context.company_name}"')


class VerifiedNewsCollectorAgent(CollectionAgent):
    agent_id = "verified-news-collector"
    name = "Verified News Sources Agent"
    agent_type = AgentType.THREAT
    signal_field = "verified_news"
    initial_progress = 10.0

    def __init__(self, feeds: Optional[List[PublisherFeed]] = None) -> None:
        self.feeds = feeds if feeds is not None else VERIFIED_NEWS_FEEDS

    def _classify(self, article: NewsArticleRecord, feed: PublisherFeed, index: int,
                  relevance: float, now: datetime) -> VerifiedNewsArticle:
        description = article.description or f"Business news from {feed.name}"
        category = categorize_article(article.title, description)
        priority, impact, probability = assess_threat_opportunity(article.title, description, category)
        return VerifiedNewsArticle(
            id=f"{feed_slug(feed)}-{index}",
            title=article.title,
            description=description,
            url=article.url,
            published_at=article.published_at if article.dated else now,
            source_name=feed.name,
            source_url=feed.base_url,
            category=category,
            priority=priority,
            impact=impact,
            probability=probability,
            company_relevance=relevance,
            confidence=feed.reliability,
            verified=True,
        )

    async def execute(self, context: CollectionContext) -> List[VerifiedNewsArticle]:
        company_name = context.company_name
        articles: List[VerifiedNewsArticle] = []
        failed_feeds = 0

        for index, feed in enumerate(self.feeds):
            if index:
                await context.pause()
            try:
                entries = await context.signal_source.fetch_feed(feed.feed_url)
            except SignalSourceError as e:
                failed_feeds += 1
                logger.warning("Verified news feed failed", source=feed.name, error=str(e))
                continue

            for position, entry in enumerate(entries[:FEED_ITEM_LIMIT]):
                relevance = calculate_news_relevance(entry.title, entry.description, company_name)
                if relevance > FEED_ITEM_RELEVANCE:
                    articles.append(self._classify(entry, feed, position, relevance, context.now))

            context.report(self.agent_id, 10 + 80 * (index + 1) / len(self.feeds))

        if self.feeds and failed_feeds == len(self.feeds):
            logger.warning("All verified news feeds failed, using fallback articles", company_name=company_name)
            return fallback_news_articles(company_name, context.now)

        relevant = [article for article in articles if article.company_relevance > VERIFIED_NEWS_RELEVANCE]
        relevant.sort(key=lambda article: article.company_relevance, reverse=True)
        return relevant[:VERIFIED_NEWS_LIMIT]


class FinancialCollectorAgent(CollectionAgent):
    agent_id = "financial-collector"
    name = "Financial Market Data Agent"
    agent_type = AgentType.SENTIMENT
    signal_field = "stock_quotes"
    initial_progress = 20.0

    async def execute(self, context: CollectionContext) -> list:
        return await context.signal_source.get_daily_quotes(context.company_name)


class CompetitorCollectorAgent(CollectionAgent):
    agent_id = "competitor-collector"
    name = "Competitive Intelligence Agent"
    agent_type = AgentType.COMPETITOR
    signal_field = "competitor_mentions"
    initial_progress = 25.0

    async def execute(self, context: CollectionContext) -> List[CompetitorMentionRecord]:
        competitors = competitors_for(context.company_name)
        found = await self._search_each(
            context, [(name, f'"{name}"') for name in competitors], self.initial_progress, 90)

        mentions: List[CompetitorMentionRecord] = []
        for name in competitors:
            articles = found.get(name)
            if not articles:
                continue
            sentiment = sum(competitor_sentiment(article_text(a)) for a in articles) / len(articles)
            mentions.append(CompetitorMentionRecord(
                company=name,
                mentions=len(articles),
                sentiment=round_half_up(sentiment),
                timestamp=context.now,
            ))
        return mentions


class GeographicCollectorAgent(CollectionAgent):
    agent_id = "geographic-collector"
    name = "Geographic Sentiment Agent"
    agent_type = AgentType.GEOGRAPHIC
    signal_field = "geographic_mentions"
    initial_progress = 30.0

    async def execute(self, context: CollectionContext) -> List[GeographicMentionRecord]:
        company_name = context.company_name
        found = await self._search_each(
            context, [(region, f'"{company_name}" {region}') for region, _, _, _ in REGIONS],
            self.initial_progress, 90)

        mentions: List[GeographicMentionRecord] = []
        for region, country, lat, lng in REGIONS:
            articles = found.get(region)
            if not articles:
                continue
            sentiment = sum(regional_sentiment(article_text(a), company_name) for a in articles) / len(articles)
            mentions.append(GeographicMentionRecord(
                region=region,
                country=country,
                mentions=len(articles),
                sentiment=round_half_up(sentiment),
                coordinates=Coordinates(lat=lat, lng=lng),
            ))
        return mentions


class ValidatorAgent(CollectionAgent):
    agent_id = "validator-agent"
    name = "Business Intelligence Validator"
    agent_type = AgentType.THREAT
    signal_field = "validated_items"

    async def execute(self, context: CollectionContext) -> List[ThreatOpportunity]:
        return generate_validated_threats_opportunities(context.company_name, VALIDATED_ITEM_COUNT)


class StakeholderCollectorAgent(CollectionAgent):
    agent_id = "stakeholder-collector"
    name = "Stakeholder Analysis Agent"
    agent_type = AgentType.STAKEHOLDER
    signal_field = "stakeholder_articles"
    initial_progress = 40.0

    async def execute(self, context: CollectionContext) -> Dict[str, List[NewsArticleRecord]]:
        queries = [(segment, f'"{context.company_name}" {keyword}') for segment, keyword in STAKEHOLDER_QUERIES]
        found = await self._search_each(context, queries, self.initial_progress, 90)
        return {segment: articles for segment, articles in found.items() if articles}

    def count_data_points(self, result: Dict[str, List[NewsArticleRecord]]) -> int:
        return sum(len(articles) for articles in result.values())


class CrisisValidatorAgent(CollectionAgent):
    agent_id = "crisis-validator"
    name = "Crisis Event Validation Agent"
    agent_type = AgentType.CRISIS
    signal_field = "crisis_validation"

    async def execute(self, context: CollectionContext) -> CrisisValidationResult:
        agent = CrisisValidationAgent(context.signal_source, context.rate_limit_delay)
        return await agent.validate_company_crises(context.company_name, context.now)

    def count_data_points(self, result: CrisisValidationResult) -> int:
        return sum(1 for event in result.verified_events if event.actual_event)


class CrisisVerifierAgent(CollectionAgent):
    agent_id = "crisis-verifier"
    name = "Crisis Event Verification Agent"
    agent_type = AgentType.CRISIS
    signal_field = "crisis_verification"

    async def execute(self, context: CollectionContext) -> CrisisVerificationResult:
        config = context.verification_config
        if not config.get("enabled", True):
            logger.info("Crisis verification disabled", company_name=context.company_name)
            return CrisisVerificationResult()

        agent = CrisisVerificationAgent(
            context.signal_source,
            minimum_sources=config.get("minimum_sources", 2),
            minimum_confidence=config.get("minimum_confidence", 0.7),
            window_days=config.get("window_days", 30),
            rate_limit_delay=context.rate_limit_delay,
        )
        # Reuse the validator's result when it ran; otherwise validate here
        validation = await context.wait_for(CrisisValidatorAgent.agent_id)
        context.report(self.agent_id, 50)
        return await agent.verify_crisis_events(context.company_name, validation)

    def count_data_points(self, result: CrisisVerificationResult) -> int:
        return len(result.verified_events)


class LinkedInCollectorAgent(CollectionAgent):
    agent_id = "linkedin-collector"
    name = "LinkedIn Professional Network Agent"
    agent_type = AgentType.PLATFORM
    signal_field = "professional_posts"

    async def execute(self, context: CollectionContext) -> list:
        return await context.signal_source.search_professional_posts(context.company_name)


class ThreatCollectorAgent(CollectionAgent):
    agent_id = "threat-collector"
    name = "Threat Intelligence Agent"
    agent_type = AgentType.THREAT
    signal_field = "detected_items"

    async def execute(self, context: CollectionContext) -> List[ThreatOpportunity]:
        company_name = context.company_name
        profile = get_company_profile(company_name)
        queries = [(term, f'"{company_name}" {term}') for term in THREAT_QUERY_TERMS]
        found = await self._search_each(context, queries, self.initial_progress, 90)

        items: List[ThreatOpportunity] = []
        seen_titles = set()
        for articles in found.values():
            for article in articles:
                if article.title in seen_titles:
                    continue
                seen_titles.add(article.title)

                assessment = validate_threat_opportunity(article.title, article.description, profile)
                if not assessment.is_valid:
                    continue

                category = categorize_article(article.title, article.description)
                priority, impact, probability = assess_threat_opportunity(
                    article.title, article.description, category)
                items.append(self._to_item(article, len(items), category.value, priority,
                                           impact, probability, assessment.relevance_score,
                                           assessment.reasons))
        return items

    def _to_item(self, article: NewsArticleRecord, index: int, category: str, priority: Priority,
                 impact: int, probability: float, relevance: int, reasons: List[str]) -> ThreatOpportunity:
        return ThreatOpportunity(
            id=f"detected-{category}-{index}",
            type=category,
            title=article.title,
            description=article.description or article.title,
            priority=priority.value,
            probability=probability,
            impact=impact,
            time_window=calculate_time_window(priority),
            verified_url=article.url or None,
            source=article.source,
            published_at=article.published_at,
            validation_score=relevance,
            business_relevance=list(reasons),
        )


def build_roster() -> List[CollectionAgent]:
    """The fixed twelve-agent roster in dashboard order"""
    return [
        RedditCollectorAgent(),
        NewsCollectorAgent(),
        VerifiedNewsCollectorAgent(),
        FinancialCollectorAgent(),
        CompetitorCollectorAgent(),
        GeographicCollectorAgent(),
        ValidatorAgent(),
        StakeholderCollectorAgent(),
        CrisisValidatorAgent(),
        CrisisVerifierAgent(),
        LinkedInCollectorAgent(),
        ThreatCollectorAgent(),
    ]


__all__ = [
    'CollectionContext', 'CollectionAgent', 'competitors_for', 'build_roster',
    'RedditCollectorAgent', 'NewsCollectorAgent', 'VerifiedNewsCollectorAgent',
    'FinancialCollectorAgent', 'CompetitorCollectorAgent', 'GeographicCollectorAgent',
    'ValidatorAgent', 'StakeholderCollectorAgent', 'CrisisValidatorAgent',
    'CrisisVerifierAgent', 'LinkedInCollectorAgent', 'ThreatCollectorAgent',
]
