"""
Crisis Verification Agent
Cross-checks validated crisis events against reliability-weighted publisher feeds
"""

import asyncio
from typing import Dict, List, Optional
from datetime import timedelta
import structlog

from models.schemas import (
    CrisisValidationResult, CrisisVerificationResult, EventVerification,
    NewsArticleRecord, ValidatedCrisisEvent, VerificationSource, VerificationSummary
)
from tools.signal_sources import PUBLISHER_FEEDS, ExternalSignalSource, PublisherFeed, SignalSourceError
from agents.crisis_validation_agent import CrisisValidationAgent
from infrastructure.monitoring import metrics_collector

logger = structlog.get_logger()

EVENT_KEYWORDS = [
    'investigation', 'lawsuit', 'breach', 'hack', 'scandal', 'crisis',
    'violation', 'fine', 'penalty', 'regulatory', 'compliance',
    'data breach', 'security incident', 'cyberattack', 'ransomware',
    'fraud', 'misconduct', 'settlement', 'charges', 'indictment',
    'response', 'statement', 'apology', 'action plan', 'measures',
    'investigation launched', 'cooperation', 'transparency',
    'accountability', 'remediation', 'corrective action',
]
MAX_EVENT_KEYWORDS = 5
MIN_KEYWORD_MATCHES = 2
CORROBORATION_WINDOW = timedelta(days=30)


def extract_event_keywords(title: str, description: str) -> List[str]:
    text = f"{title} {description}".lower()
    return [keyword for keyword in EVENT_KEYWORDS if keyword in text][:MAX_EVENT_KEYWORDS]


def article_corroborates(article: NewsArticleRecord, company_name: str,
                         keywords: List[str], event: ValidatedCrisisEvent,
                         window: timedelta = CORROBORATION_WINDOW) -> bool:
    """Company mentioned, at least two event keywords, dated within the window of the event"""
    content = f"{article.title} {article.description}".lower()
    if company_name.lower() not in content:
        return False
    if sum(1 for keyword in keywords if keyword in content) < MIN_KEYWORD_MATCHES:
        return False
    return abs(article.published_at - event.date) <= window


class CrisisVerificationAgent:
    """
    Crisis Event Verification Agent

    An event is verified once at least `minimum_sources` independent feeds
    corroborate it; its confidence is the mean reliability of those feeds.
    Placeholder events never take part.
    """

    def __init__(self, signal_source: ExternalSignalSource,
                 validation_agent: Optional[CrisisValidationAgent] = None,
                 feeds: Optional[List[PublisherFeed]] = None,
                 minimum_sources: int = 2, minimum_confidence: float = 0.7,
                 window_days: int = 30, rate_limit_delay: float = 1.0) -> None:
        self.signal_source = signal_source
        self.validation_agent = validation_agent or CrisisValidationAgent(signal_source, rate_limit_delay)
        self.feeds = feeds if feeds is not None else PUBLISHER_FEEDS
        self.minimum_sources = minimum_sources
        self.minimum_confidence = minimum_confidence
        self.window = timedelta(days=window_days)
        self.rate_limit_delay = rate_limit_delay

    async def _load_feeds(self) -> Dict[str, Optional[List[NewsArticleRecord]]]:
        """Fetch every feed once; a failed feed maps to None"""
        articles: Dict[str, Optional[List[NewsArticleRecord]]] = {}
        for index, feed in enumerate(self.feeds):
            if index and self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay)
            try:
                articles[feed.name] = await self.signal_source.fetch_feed(feed.feed_url)
            except SignalSourceError as e:
                logger.warning("Verification feed unavailable", source=feed.name, error=str(e))
                articles[feed.name] = None
        return articles

    def cross_verify_event(self, event: ValidatedCrisisEvent, company_name: str,
                           feed_articles: Dict[str, Optional[List[NewsArticleRecord]]]) -> EventVerification:
        keywords = extract_event_keywords(event.title, event.description)
        sources: List[VerificationSource] = []
        corroborating: List[float] = []

        for feed in self.feeds:
            articles = feed_articles.get(feed.name) or []
            corroborated = any(
                article_corroborates(article, company_name, keywords, event, self.window)
                for article in articles
            )
            sources.append(VerificationSource(
                name=feed.name,
                url=feed.base_url,
                reliability=feed.reliability,
                verified=corroborated,
            ))
            if corroborated:
                corroborating.append(feed.reliability)

        is_verified = len(corroborating) >= self.minimum_sources
        confidence = sum(corroborating) / len(corroborating) if is_verified else 0.0
        return EventVerification(event=event, is_verified=is_verified, confidence=confidence, sources=sources)

    async def verify_crisis_events(self, company_name: str,
                                   validation: Optional[CrisisValidationResult] = None) -> CrisisVerificationResult:
        if validation is None:
            validation = await self.validation_agent.validate_company_crises(company_name)

        candidates = [event for event in validation.verified_events if event.actual_event]
        if not validation.is_valid or not candidates:
            logger.info("No actual crisis events to verify", company_name=company_name)
            metrics_collector.record_crisis_verification(False)
            return CrisisVerificationResult()

        feed_articles = await self._load_feeds()
        results = [self.cross_verify_event(event, company_name, feed_articles) for event in candidates]

        verified_events = [
            result.event for result in results
            if result.is_verified and result.confidence >= self.minimum_confidence
        ]
        all_sources = [source for result in results for source in result.sources]
        verified_sources = [source for source in all_sources if source.verified]

        summary = VerificationSummary(
            total_sources=len(all_sources),
            verified_sources=len(verified_sources),
            average_reliability=(sum(s.reliability for s in verified_sources) / len(verified_sources)
                                 if verified_sources else 0.0),
            cross_verification_score=(sum(r.confidence for r in results) / len(results)
                                      if verified_events else 0.0),
        )

        is_verified = bool(verified_events) and summary.cross_verification_score >= self.minimum_confidence
        metrics_collector.record_crisis_verification(is_verified)

        logger.info("Crisis verification completed",
                    company_name=company_name, candidates=len(candidates),
                    verified=len(verified_events), confidence=summary.cross_verification_score)

        return CrisisVerificationResult(
            is_verified=is_verified,
            confidence=summary.cross_verification_score,
            sources=self._deduplicate_sources(all_sources),
            verified_events=verified_events,
            verification_summary=summary,
        )

    def _deduplicate_sources(self, sources: List[VerificationSource]) -> List[VerificationSource]:
        """One entry per feed; a verified entry wins"""
        unique: Dict[str, VerificationSource] = {}
        for source in sources:
            existing = unique.get(source.name)
            if existing is None or source.verified:
                unique[source.name] = source
        return list(unique.values())

    async def has_verified_crisis_events(self, company_name: str) -> bool:
        result = await self.verify_crisis_events(company_name)
        return (result.is_verified and bool(result.verified_events)
                and result.confidence >= self.minimum_confidence)


__all__ = [
    'extract_event_keywords', 'article_corroborates', 'CrisisVerificationAgent',
]
