"""
External Signal Sources
Pluggable news, forum, professional-network and market-quote sources returning typed records
"""

import asyncio
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, quote, urlparse

import aiohttp
import feedparser
import structlog
from bs4 import BeautifulSoup
from cachetools import TTLCache
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from models.schemas import (
    Engagement, ForumPostRecord, NewsArticleRecord, ProfessionalPostRecord, StockQuoteRecord
)
from infrastructure.monitoring import metrics_collector

logger = structlog.get_logger()

GOOGLE_NEWS_SEARCH_URL = "https://news.google.com/rss/search?q={query}&hl=en-US&gl=US&ceid=US:en"
FORUM_SEARCH_URL = "https://www.reddit.com/r/{community}/search.json"
FORUM_COMMUNITIES = ['all', 'news', 'business', 'technology', 'stocks', 'investing']
NEWS_RESULT_LIMIT = 15
FORUM_RESULT_LIMIT = 25

SIGNAL_OPERATIONS: FrozenSet[str] = frozenset([
    'search_news', 'search_forum_posts', 'search_professional_posts', 'get_daily_quotes', 'fetch_feed',
])


class SignalSourceError(Exception):
    """Raised when a signal source request fails after its retry budget"""
    pass


class PublisherFeed:
    """A reliability-weighted publisher RSS feed"""

    def __init__(self, name: str, feed_url: str, base_url: str, reliability: float):
        self.name = name
        self.feed_url = feed_url
        self.base_url = base_url
        self.reliability = reliability

    def __repr__(self) -> str:
        return f"PublisherFeed({self.name!r}, reliability={self.reliability})"


PUBLISHER_FEEDS: List[PublisherFeed] = [
    PublisherFeed("Reuters", "https://feeds.reuters.com/reuters/businessNews", "https://www.reuters.com", 0.95),
    PublisherFeed("Associated Press", "https://feeds.apnews.com/rss/apf-business", "https://apnews.com", 0.94),
    PublisherFeed("BBC Business", "https://feeds.bbci.co.uk/news/business/rss.xml", "https://www.bbc.com", 0.92),
    PublisherFeed("Financial Times", "https://www.ft.com/rss/home", "https://www.ft.com", 0.93),
    PublisherFeed("Wall Street Journal", "https://feeds.a.dj.com/rss/RSSWorldNews.xml", "https://www.wsj.com", 0.94),
    PublisherFeed("Bloomberg", "https://feeds.bloomberg.com/markets/news.rss", "https://www.bloomberg.com", 0.93),
]

# Bloomberg is used for cross-verification only
VERIFIED_NEWS_FEEDS: List[PublisherFeed] = PUBLISHER_FEEDS[:5]


def clean_html_text(content: str) -> str:
    if not content:
        return ""
    soup = BeautifulSoup(content, 'html.parser')
    return soup.get_text(separator=' ', strip=True)


def clean_article_url(url: str) -> str:
    """Prefer the publisher URL carried in a redirect link's `url` parameter"""
    try:
        actual = parse_qs(urlparse(url).query).get('url')
    except ValueError:
        return url
    return actual[0] if actual else url


def _entry_published(entry: Any) -> Optional[datetime]:
    published_parsed = entry.get('published_parsed') or entry.get('updated_parsed')
    if published_parsed:
        return datetime(*published_parsed[:6], tzinfo=timezone.utc)
    return None


def _entry_source_name(entry: Any, default_source: str) -> str:
    source_info = entry.get('source') or {}
    source_title = source_info.get('title', '') if hasattr(source_info, 'get') else ''
    name = source_title.split('-')[0].strip() if source_title else ''
    return name or default_source


def parse_feed_entries(content: str, default_source: str, limit: Optional[int] = None) -> List[NewsArticleRecord]:
    """
    Parse RSS/Atom content into news records; entries without title or link are skipped

    Undated entries are kept with dated=False; aggregation places them at the run clock.
    """
    feed = feedparser.parse(content)
    records = []

    entries = feed.entries[:limit] if limit else feed.entries
    for entry in entries:
        title = clean_html_text(entry.get('title', ''))
        link = entry.get('link', '')
        if not title or not link:
            continue

        description = entry.get('summary', '') or entry.get('description', '')
        published_at = _entry_published(entry)
        records.append(NewsArticleRecord(
            title=title,
            description=clean_html_text(description),
            url=clean_article_url(link),
            published_at=published_at or datetime.now(timezone.utc),
            dated=published_at is not None,
            source=_entry_source_name(entry, default_source),
        ))

    return records


class ExternalSignalSource(ABC):
    """
    Interface every signal source implements.

    Each operation returns a possibly empty list of tagged records. Transport
    failures surface as SignalSourceError.
    """

    name = "abstract"
    # operations this source has real data for
    operations: FrozenSet[str] = SIGNAL_OPERATIONS

    @abstractmethod
    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        pass

    @abstractmethod
    async def search_forum_posts(self, query: str) -> List[ForumPostRecord]:
        pass

    @abstractmethod
    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        pass

    @abstractmethod
    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        pass

    @abstractmethod
    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        pass


class FeedSignalSource(ExternalSignalSource):
    """Public RSS search, publisher feeds and forum search JSON over aiohttp"""

    name = "feeds"
    operations = frozenset(['search_news', 'search_forum_posts', 'fetch_feed'])

    def __init__(self, request_timeout: float = 15.0, retry_attempts: int = 2,
                 retry_wait: float = 1.0, cache_ttl: int = 300, cache_size: int = 256,
                 user_agent: str = "Mozilla/5.0 (compatible; SentimentCollector/1.0)",
                 rate_limit_delay: float = 1.0):
        self.request_timeout = request_timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait = retry_wait
        self.rate_limit_delay = rate_limit_delay
        self.headers = {
            'User-Agent': user_agent,
            'Accept': 'application/rss+xml, application/json, text/plain, */*',
        }
        self.feed_cache = TTLCache(maxsize=cache_size, ttl=cache_ttl)

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None,
                       operation: str = "feed", as_json: bool = False) -> Any:
        start_time = time.time()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_fixed(self.retry_wait),
                retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError, SignalSourceError)),
                reraise=True,
            ):
                with attempt:
                    timeout = aiohttp.ClientTimeout(total=self.request_timeout)
                    async with aiohttp.ClientSession(headers=self.headers, timeout=timeout) as session:
                        async with session.get(url, params=params) as response:
                            if response.status != 200:
                                raise SignalSourceError(f"{url} returned status {response.status}")
                            if as_json:
                                payload = await response.json(content_type=None)
                            else:
                                raw = await response.read()
                                payload = raw.decode('utf-8', errors='replace')

            metrics_collector.record_signal_request(self.name, operation, "success", time.time() - start_time)
            return payload

        except (aiohttp.ClientError, asyncio.TimeoutError, SignalSourceError) as e:
            metrics_collector.record_signal_request(self.name, operation, "error", time.time() - start_time)
            logger.warning("Signal request failed", url=url, operation=operation, error=str(e))
            raise SignalSourceError(f"{operation} request failed for {url}: {e}") from e

    async def _fetch_text(self, url: str, operation: str = "feed") -> str:
        cached = self.feed_cache.get(url)
        if cached is not None:
            logger.debug("Feed cache hit", url=url)
            return cached

        content = await self._request(url, operation=operation)
        self.feed_cache[url] = content
        return content

    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        url = GOOGLE_NEWS_SEARCH_URL.format(query=quote(query, safe=''))
        content = await self._fetch_text(url, operation="news_search")
        records = parse_feed_entries(content, default_source="Google News", limit=NEWS_RESULT_LIMIT)
        logger.debug("News search completed", query=query, results=len(records))
        return records

    async def _search_community(self, community: str, query: str) -> List[ForumPostRecord]:
        params = {
            'q': query,
            'sort': 'new',
            'limit': FORUM_RESULT_LIMIT,
            't': 'month',
            'restrict_sr': 'false' if community == 'all' else 'true',
        }
        payload = await self._request(FORUM_SEARCH_URL.format(community=community), params=params,
                                      operation="forum_search", as_json=True)

        posts = []
        children = ((payload or {}).get('data') or {}).get('children') or []
        for child in children:
            data = child.get('data') or {}
            if not data.get('id'):
                continue
            posts.append(ForumPostRecord(
                id=str(data['id']),
                title=data.get('title') or '',
                text=data.get('selftext') or '',
                score=int(data.get('score') or 0),
                num_comments=int(data.get('num_comments') or 0),
                created_at=datetime.fromtimestamp(float(data.get('created_utc') or time.time()), tz=timezone.utc),
                community=data.get('subreddit') or community,
                url=f"https://reddit.com{data['permalink']}" if data.get('permalink') else (data.get('url') or ''),
            ))
        return posts

    async def search_forum_posts(self, query: str,
                                 communities: Sequence[str] = tuple(FORUM_COMMUNITIES)) -> List[ForumPostRecord]:
        """Search each community in turn; a failing community is logged and skipped"""
        posts: List[ForumPostRecord] = []
        for index, community in enumerate(communities):
            if index and self.rate_limit_delay:
                await asyncio.sleep(self.rate_limit_delay)
            try:
                posts.extend(await self._search_community(community, query))
            except SignalSourceError as e:
                logger.warning("Forum community search failed", community=community, error=str(e))
        return posts

    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        # No public search API; the synthetic source covers this signal
        return []

    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        return []

    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        content = await self._fetch_text(feed_url, operation="publisher_feed")
        default_source = urlparse(feed_url).netloc or "News Source"
        return parse_feed_entries(content, default_source=default_source)


# Quote symbols for well-known names; others use the first five letters
STOCK_SYMBOLS: Dict[str, str] = {
    'kaseya': 'KASEYA',
    'microsoft': 'MSFT',
    'apple': 'AAPL',
    'google': 'GOOGL',
    'amazon': 'AMZN',
    'tesla': 'TSLA',
    'meta': 'META',
    'netflix': 'NFLX',
}

QUOTE_DAYS = 30

PROFESSIONAL_POST_TEMPLATES = [
    ("Thoughts on {name}'s recent strategic direction? The industry is watching closely.", "industry_analyst", -10),
    ("Interesting developments at {name}. Their approach to crisis management will be a case study.",
     "business_consultant", -5),
    ("{name} leadership team showing resilience during challenging times. Transparency matters.", "executive", 15),
    ("Working with {name} partners on recovery initiatives. Collaboration is key in times like these.",
     "partner", 20),
    ("{name}'s commitment to stakeholder communication during this period is noteworthy.", "investor", 10),
]

COMPANY_UPDATE_TEMPLATES = [
    ("{name} Leadership Update: our leadership team addresses recent developments and outlines our path forward.", 5),
    ("{name} in the News: recent media coverage and our response to industry developments.", -5),
    ("Message from {name} CEO: executive leadership shares perspective on current challenges and opportunities.", 10),
]

EXECUTIVE_TITLES = ['CEO', 'CTO', 'CFO', 'COO']

AUTHOR_NAMES = ['Sarah Johnson', 'Michael Chen', 'David Rodriguez', 'Emily Thompson', 'James Wilson']

AUTHOR_TITLES: Dict[str, str] = {
    'industry_analyst': 'Senior Industry Analyst',
    'business_consultant': 'Management Consultant',
    'executive': 'Industry Executive',
    'partner': 'Strategic Partner',
    'investor': 'Investment Director',
    'industry_peer': 'Industry Professional',
}

BASE_ENGAGEMENT: Dict[str, tuple] = {
    'industry_analyst': (100, 20, 15),
    'business_consultant': (80, 15, 10),
    'executive': (150, 30, 20),
    'partner': (60, 12, 8),
    'investor': (120, 25, 18),
    'industry_peer': (70, 14, 10),
}


def stock_symbol(company_name: str) -> str:
    return STOCK_SYMBOLS.get(company_name.lower(), company_name.upper().replace(' ', '')[:5])


def _slug(company_name: str) -> str:
    return '-'.join(company_name.lower().split())


class SyntheticSignalSource(ExternalSignalSource):
    """
    Deterministic offline records for signals with no public API.

    Provides daily quotes and professional-network posts seeded from the
    company name. News, forum and feed operations return nothing, so this
    source never fabricates coverage that could pass crisis verification.
    """

    name = "synthetic"
    operations = frozenset(['search_professional_posts', 'get_daily_quotes'])

    def __init__(self, now_provider: Optional[Callable[[], datetime]] = None):
        self.now_provider = now_provider or (lambda: datetime.now(timezone.utc))

    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        return []

    async def search_forum_posts(self, query: str) -> List[ForumPostRecord]:
        return []

    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        return []

    def _engagement(self, rng: random.Random, author_type: str) -> Engagement:
        likes, comments, shares = BASE_ENGAGEMENT.get(author_type, BASE_ENGAGEMENT['industry_peer'])
        return Engagement(
            likes=int(likes * (0.5 + rng.random())),
            comments=int(comments * (0.5 + rng.random())),
            shares=int(shares * (0.5 + rng.random())),
        )

    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        rng = random.Random(f"professional:{company_name}")
        now = self.now_provider()
        posts = []

        for index, (template, author_type, sentiment) in enumerate(PROFESSIONAL_POST_TEMPLATES):
            posts.append(ProfessionalPostRecord(
                id=f"professional-post-{index}",
                text=template.format(name=company_name),
                author_name=rng.choice(AUTHOR_NAMES),
                author_title=AUTHOR_TITLES[author_type],
                engagement=self._engagement(rng, author_type),
                published_at=now - timedelta(days=rng.random() * 7),
                url=f"https://www.linkedin.com/posts/activity-{index}",
                sentiment=round(sentiment + (rng.random() - 0.5) * 10),
                relevance_score=0.8 + rng.random() * 0.2,
            ))

        for index, (template, sentiment) in enumerate(COMPANY_UPDATE_TEMPLATES):
            posts.append(ProfessionalPostRecord(
                id=f"company-update-{index}",
                text=template.format(name=company_name),
                author_name=company_name,
                author_title="Company Page",
                engagement=Engagement(
                    likes=int(50 + rng.random() * 200),
                    comments=int(10 + rng.random() * 50),
                    shares=int(5 + rng.random() * 25),
                ),
                published_at=now - timedelta(days=rng.random() * 14),
                url=f"https://www.linkedin.com/company/{_slug(company_name)}/posts/",
                sentiment=round(sentiment + (rng.random() - 0.5) * 10),
                relevance_score=1.0,
                weight_multiplier=1.5,
            ))

        for exec_index, title in enumerate(EXECUTIVE_TITLES):
            executive = f"{company_name} {title}"
            influence = 0.6 + rng.random() * 0.4
            for mention_index in range(2 + int(rng.random() * 3)):
                posts.append(ProfessionalPostRecord(
                    id=f"exec-mention-{exec_index}-{mention_index}",
                    text=f"Thoughts on {executive}'s leadership during {company_name}'s current situation. "
                         f"Experience matters in times like these.",
                    author_name=rng.choice(AUTHOR_NAMES),
                    author_title=AUTHOR_TITLES['industry_peer'],
                    engagement=self._engagement(rng, 'industry_peer'),
                    published_at=now - timedelta(days=rng.random() * 10),
                    url=f"https://www.linkedin.com/posts/activity-exec-{exec_index}-{mention_index}",
                    sentiment=round(-5 + rng.random() * 20),
                    relevance_score=0.7 + rng.random() * 0.3,
                    weight_multiplier=influence,
                ))

        return posts

    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        """30 daily closes around base_price = 50 + len(name) * 3.7"""
        if not company_name:
            return []

        rng = random.Random(f"quotes:{company_name}")
        now = self.now_provider()
        base_price = 50 + len(company_name) * 3.7
        volatility = 0.02 + (ord(company_name[0]) % 10) * 0.001
        symbol = stock_symbol(company_name)

        quotes: List[StockQuoteRecord] = []
        for days_ago in range(QUOTE_DAYS - 1, -1, -1):
            price = base_price * (1 + (rng.random() - 0.5) * volatility * 2)
            previous = quotes[-1].price if quotes else base_price
            change = price - previous
            quotes.append(StockQuoteRecord(
                symbol=symbol,
                price=round(price, 2),
                change=round(change, 2),
                change_percent=round(change / previous * 100, 2),
                volume=int(1000000 + rng.random() * 5000000),
                market_cap=int(price * 1000000000),
                timestamp=now - timedelta(days=days_ago),
            ))
        return quotes


class CompositeSignalSource(ExternalSignalSource):
    """
    Concatenates the results of several sources in order

    Each operation goes only to the sources that serve it, and fails when
    every one of those sources failed.
    """

    name = "composite"

    def __init__(self, sources: Sequence[ExternalSignalSource]):
        self.sources = list(sources)
        self.operations = frozenset().union(*(source.operations for source in self.sources))

    async def _gather(self, operation: str, argument: str) -> list:
        serving = [source for source in self.sources if operation in source.operations]
        results: list = []
        errors: List[SignalSourceError] = []
        for source in serving:
            try:
                results.extend(await getattr(source, operation)(argument))
            except SignalSourceError as e:
                logger.warning("Signal source operation failed", source=source.name,
                               operation=operation, error=str(e))
                errors.append(e)
        if errors and len(errors) == len(serving):
            raise errors[-1]
        return results

    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        return await self._gather("search_news", query)

    async def search_forum_posts(self, query: str) -> List[ForumPostRecord]:
        return await self._gather("search_forum_posts", query)

    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        return await self._gather("search_professional_posts", company_name)

    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        return await self._gather("get_daily_quotes", company_name)

    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        return await self._gather("fetch_feed", feed_url)


class NullSignalSource(ExternalSignalSource):
    """Returns nothing; forces the synthetic metrics path"""

    name = "none"

    async def search_news(self, query: str) -> List[NewsArticleRecord]:
        return []

    async def search_forum_posts(self, query: str) -> List[ForumPostRecord]:
        return []

    async def search_professional_posts(self, company_name: str) -> List[ProfessionalPostRecord]:
        return []

    async def get_daily_quotes(self, company_name: str) -> List[StockQuoteRecord]:
        return []

    async def fetch_feed(self, feed_url: str) -> List[NewsArticleRecord]:
        return []


def create_signal_source(config: Dict[str, Any]) -> ExternalSignalSource:
    """Build the configured source from get_signal_source_config()"""
    source = config.get("source", "feeds")

    if source == "none":
        return NullSignalSource()
    if source == "synthetic":
        return SyntheticSignalSource()

    feeds = FeedSignalSource(
        request_timeout=config.get("request_timeout", 15.0),
        retry_attempts=config.get("retry_attempts", 2),
        retry_wait=config.get("retry_wait", 1.0),
        cache_ttl=config.get("cache_ttl", 300),
        cache_size=config.get("cache_size", 256),
        user_agent=config.get("user_agent", "Mozilla/5.0 (compatible; SentimentCollector/1.0)"),
        rate_limit_delay=config.get("rate_limit_delay", 1.0),
    )
    # Quotes and professional posts have no public feed
    return CompositeSignalSource([feeds, SyntheticSignalSource()])


__all__ = [
    'SignalSourceError', 'SIGNAL_OPERATIONS', 'PublisherFeed', 'PUBLISHER_FEEDS',
    'VERIFIED_NEWS_FEEDS', 'clean_html_text', 'clean_article_url', 'parse_feed_entries', 'stock_symbol',
    'ExternalSignalSource', 'FeedSignalSource', 'SyntheticSignalSource',
    'CompositeSignalSource', 'NullSignalSource', 'create_signal_source',
]
