"""
In-memory signal source and record builders shared by the unit tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Union

from models.schemas import (
    ForumPostRecord, NewsArticleRecord, ProfessionalPostRecord, StockQuoteRecord
)
from tools.signal_sources import ExternalSignalSource, SignalSourceError

NOW = datetime(2025, 9, 15, 12, 0, tzinfo=timezone.utc)

FAST_AGENT_CONFIG = {
    "execution_timeout": 5,
    "estimated_duration": 90,
    "rate_limit_delay": 0,
    "minimum_sources": 2,
    "minimum_confidence": 0.7,
    "verification_window_days": 30,
    "metrics_cache_ttl": 600,
    "metrics_cache_size": 16,
    "crisis_verification": True,
}

NewsResponder = Union[List[NewsArticleRecord], Callable[[str], List[NewsArticleRecord]]]


def make_article(title: str, description: str = "", days_ago: float = 0,
                 source: str = "Reuters", now: datetime = NOW) -> NewsArticleRecord:
    slug = "-".join(title.lower().split())[:40]
    return NewsArticleRecord(
        title=title,
        description=description,
        url=f"https://news.example.com/{slug}",
        published_at=now - timedelta(days=days_ago),
        source=source,
    )


class FakeSignalSource(ExternalSignalSource):
    """Canned responses; records every news query it receives"""

    name = "fake"

    def __init__(self, news: Optional[NewsResponder] = None,
                 feeds: Optional[Dict[str, List[NewsArticleRecord]]] = None,
                 failing_feeds: Iterable[str] = (),
                 forum: Optional[List[ForumPostRecord]] = None,
                 quotes: Optional[List[StockQuoteRecord]] = None,
                 professional: Optional[List[ProfessionalPostRecord]] = None,
                 fail_news: bool = False):
        self.news = news if news is not None else []
        self.feeds = feeds or {}
        self.failing_feeds = set(failing_feeds)
        self.forum = forum or []
        self.quotes = quotes or []
        self.professional = professional or []
        self.fail_news = fail_news
        self.news_queries: List[str] = []
        self.feed_requests: List[str] = []

    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        self.news_queries.append(query)
        if self.fail_news:
            raise SignalSourceError("news search unavailable")
        if callable(self.news):
            return list(self.news(query))
        return list(self.news)

    async def search_forum_posts(self, query: str) -> List[ForumPostRecord]:
        return list(self.forum)

    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        return list(self.professional)

    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        return list(self.quotes)

    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        self.feed_requests.append(feed_url)
        if feed_url in self.failing_feeds:
            raise SignalSourceError(f"{feed_url} unavailable")
        return list(self.feeds.get(feed_url, []))
